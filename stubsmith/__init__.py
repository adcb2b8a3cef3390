"""stubsmith — companion stub generation for Python protocols, classes and callables."""

from .api import (  # noqa: F401
    GenerationResult,
    extract_source,
    generate,
    generate_batch,
    generate_from_source,
    total_stats,
)
from .generation_types import GenerationStats, GeneratorConfig  # noqa: F401
from .runtime import (  # noqa: F401
    Event,
    In,
    Out,
    Ref,
    StubError,
    Times,
    UnconfiguredMemberError,
    VerificationError,
    inline_stubs,
    stub,
)
