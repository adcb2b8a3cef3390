"""ModelExtractor — language-agnostic tree-sitter declaration → Member Model."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..diagnostics import Diagnostic, DiagnosticBag
from ..model import CallableModel, ClassModel, GenerationUnit, InterfaceModel
from ..parser import ParsedSource

logger = logging.getLogger(__name__)

Declaration = InterfaceModel | ClassModel | CallableModel


@dataclass
class ExtractionResult:
    """Everything one source file yields: models, stub requests, diagnostics."""

    declarations: dict[str, Declaration] = field(default_factory=dict)
    units: list[GenerationUnit] = field(default_factory=list)
    diagnostics: DiagnosticBag = field(default_factory=DiagnosticBag)
    # Diagnostics attached to the unit they concern, keyed by requester
    unit_diagnostics: dict[str, list[Diagnostic]] = field(default_factory=dict)

    def diagnostics_for(self, requester: str) -> list[Diagnostic]:
        return self.unit_diagnostics.get(requester, [])


class ModelExtractor(ABC):
    """Base class for tree-sitter model extractors.

    Subclasses override the field-name constants where the grammar differs
    from the defaults and implement ``extract``.
    """

    # ── overridable constants ────────────────────────────────────

    CLASS_NAME_FIELD: str = "name"
    CLASS_BODY_FIELD: str = "body"
    CLASS_BASES_FIELD: str = "superclasses"

    FUNC_NAME_FIELD: str = "name"
    FUNC_PARAMS_FIELD: str = "parameters"
    FUNC_RETURN_FIELD: str = "return_type"
    FUNC_TYPE_PARAMS_FIELD: str = "type_parameters"

    ASSIGN_LEFT_FIELD: str = "left"
    ASSIGN_TYPE_FIELD: str = "type"
    ASSIGN_RIGHT_FIELD: str = "right"

    COMMENT_TYPES: frozenset[str] = frozenset({"comment"})

    def __init__(self):
        self._source: bytes = b""
        self._module: str = ""

    # ── helpers ──────────────────────────────────────────────────

    def _node_text(self, node) -> str:
        return self._source[node.start_byte : node.end_byte].decode("utf-8")

    def _location(self, node) -> str:
        line, column = node.start_point
        return f"{line + 1}:{column}"

    def _named_children(self, node) -> list:
        return [c for c in node.children if c.is_named and c.type not in self.COMMENT_TYPES]

    # ── entry point ──────────────────────────────────────────────

    def extract_source(self, parsed: ParsedSource, module: str = "") -> ExtractionResult:
        self._source = parsed.source
        self._module = module
        result = self.extract(parsed.root)
        logger.info(
            "Extracted %d declaration(s) and %d unit(s) from %s",
            len(result.declarations),
            len(result.units),
            module or "<source>",
        )
        return result

    @abstractmethod
    def extract(self, root) -> ExtractionResult: ...

    @abstractmethod
    def extract_model(self, name: str) -> Declaration | None:
        """Model of the declaration called *name*; None when it has nothing to stub."""
