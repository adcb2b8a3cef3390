"""Tree-sitter parsing for declaration sources and annotation snippets."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import tree_sitter_language_pack as tslp

DEFAULT_LANGUAGE = "python"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedSource:
    """A syntax tree together with the bytes its node offsets refer to."""

    tree: object
    source: bytes

    @property
    def root(self):
        return self.tree.root_node

    @property
    def has_errors(self) -> bool:
        return self.tree.root_node.has_error

    def error_lines(self) -> list[int]:
        """1-based lines holding ERROR or missing nodes, in ascending order."""
        lines: set[int] = set()
        stack = [self.root]
        while stack:
            node = stack.pop()
            if not node.has_error:
                continue
            if node.type == "ERROR" or node.is_missing:
                lines.add(node.start_point[0] + 1)
            stack.extend(node.children)
        return sorted(lines)


class Parser:
    """Parses source text, keeping one tree-sitter parser per language.

    The annotation reader re-parses many short snippets, so grammars are
    loaded once per instance. An instance is not shared between threads.
    """

    def __init__(self):
        self._parsers: dict[str, object] = {}

    def _parser_for(self, language: str):
        if language not in self._parsers:
            logger.debug("Loading tree-sitter grammar for %s", language)
            self._parsers[language] = tslp.get_parser(language)
        return self._parsers[language]

    def parse(self, source: str, language: str = DEFAULT_LANGUAGE) -> ParsedSource:
        encoded = source.encode("utf-8")
        return ParsedSource(tree=self._parser_for(language).parse(encoded), source=encoded)
