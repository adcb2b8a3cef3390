"""Tree-sitter model extractors, one per source language."""

from __future__ import annotations

from ._base import Declaration, ExtractionResult, ModelExtractor
from .python import PythonModelExtractor

# Lazy imports so only the requested extractor is loaded
_EXTRACTOR_CLASSES: dict[str, str] = {
    "python": "python.PythonModelExtractor",
}


def get_model_extractor(language: str) -> ModelExtractor:
    """Instantiate the model extractor for *language*.

    Raises ``ValueError`` if *language* has no registered extractor.
    """
    spec = _EXTRACTOR_CLASSES.get(language)
    if spec is None:
        raise ValueError(f"Unsupported language for model extraction: {language}")
    module_name, class_name = spec.split(".")
    import importlib

    mod = importlib.import_module(f".{module_name}", package=__package__)
    cls = getattr(mod, class_name)
    return cls()


SUPPORTED_LANGUAGES: tuple[str, ...] = tuple(_EXTRACTOR_CLASSES.keys())

__all__ = [
    "Declaration",
    "ExtractionResult",
    "ModelExtractor",
    "PythonModelExtractor",
    "get_model_extractor",
    "SUPPORTED_LANGUAGES",
]
