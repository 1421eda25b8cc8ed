from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Dict, Iterator, List, Optional

import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Node, Parser, Tree

from dictlens.models import Position, Range

# Load TypeScript and TSX grammars
TYPESCRIPT_LANGUAGE = Language(tstypescript.language_typescript())
TSX_LANGUAGE = Language(tstypescript.language_tsx())

logger = logging.getLogger(__name__)

# `<T>value` casts are only legal in the non-JSX grammar.
_TYPESCRIPT_ONLY_SUFFIXES = {".ts", ".mts", ".cts"}

_EXPRESSION_WRAPPERS = {
    "parenthesized_expression",
    "as_expression",
    "satisfies_expression",
    "non_null_expression",
    "await_expression",
    "type_assertion",
}


def uses_tsx_grammar(virtual_path: str) -> bool:
    """
    Everything except plain `.ts` sources is parsed with the TSX grammar:
    JS files may contain JSX and normalized .vue/.svelte files always do.
    """
    suffix = PurePath(virtual_path).suffix.lower()
    return suffix not in _TYPESCRIPT_ONLY_SUFFIXES


def node_text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="ignore")


def literal_string_value(node: Node | None) -> Optional[str]:
    """
    Value of a string literal or of a template literal without `${}` parts.

    Anything else (identifiers, concatenations, substitutions) is not a
    literal and yields None.
    """
    if node is None:
        return None
    if node.type == "string":
        return node_text(node)[1:-1]
    if node.type == "template_string":
        if any(child.type == "template_substitution" for child in node.children):
            return None
        return node_text(node)[1:-1]
    return None


def literal_key_value(node: Node | None) -> Optional[str]:
    """Like `literal_string_value` but also accepts numeric keys (`items[0]`)."""
    if node is not None and node.type == "number":
        return node_text(node)
    return literal_string_value(node)


def unwrap_expression(node: Node | None) -> Node | None:
    """Strip parentheses, `await`, `!`, `as T` and `satisfies T` wrappers."""
    while node is not None and node.type in _EXPRESSION_WRAPPERS:
        children = [c for c in node.named_children if c.type != "comment"]
        if not children:
            return None
        # `<T>value` puts the expression last, every other wrapper puts it first.
        node = children[-1] if node.type == "type_assertion" else children[0]
    return node


def iter_descendants(node: Node, types: set[str] | None = None) -> Iterator[Node]:
    """Pre-order walk over named descendants, optionally filtered by type."""
    stack: List[Node] = list(reversed(node.named_children))
    while stack:
        current = stack.pop()
        if types is None or current.type in types:
            yield current
        stack.extend(reversed(current.named_children))


class LineIndex:
    """Maps tree-sitter byte offsets to editor (line, character) positions and back."""

    def __init__(self, source: bytes):
        self._source = source
        self._line_starts: List[int] = [0]
        for i, byte in enumerate(source):
            if byte == 0x0A:
                self._line_starts.append(i + 1)

    def position_at(self, byte_offset: int) -> Position:
        byte_offset = max(0, min(byte_offset, len(self._source)))
        line = bisect.bisect_right(self._line_starts, byte_offset) - 1
        start = self._line_starts[line]
        prefix = self._source[start:byte_offset].decode("utf-8", errors="ignore")
        return Position(line=line, character=len(prefix))

    def offset_at(self, position: Position) -> int:
        if position.line < 0:
            return 0
        if position.line >= len(self._line_starts):
            return len(self._source)
        start = self._line_starts[position.line]
        end = (
            self._line_starts[position.line + 1]
            if position.line + 1 < len(self._line_starts)
            else len(self._source)
        )
        line_text = self._source[start:end].decode("utf-8", errors="ignore").rstrip("\r\n")
        return start + len(line_text[: max(0, position.character)].encode("utf-8"))


@dataclass(frozen=True)
class ParsedSource:
    """
    A parsed file handle. Handles are immutable; re-parsing the same
    virtual path produces a new handle and the old one is simply dropped
    by the context.
    """

    virtual_path: str
    text: str
    source: bytes
    tree: Tree
    revision: int
    line_index: LineIndex = field(compare=False)

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def position_of(self, node: Node) -> Position:
        return self.line_index.position_at(node.start_byte)

    def range_of(self, node: Node) -> Range:
        return Range(
            start=self.line_index.position_at(node.start_byte),
            end=self.line_index.position_at(node.end_byte),
        )

    def node_at(self, position: Position) -> Node | None:
        """Smallest named node covering the character at `position`."""
        offset = self.line_index.offset_at(position)
        if offset >= len(self.source):
            return None
        node = self.root.named_descendant_for_byte_range(offset, offset)
        if node is None or node == self.root:
            return None
        return node


class ParseContext:
    """
    Arena of parsed sources keyed by virtual path.

    `parse` replaces whatever was stored under the path before, so repeated
    editor events on the same document never accumulate trees. The context
    is not safe for concurrent use; callers share it from one event loop.
    """

    def __init__(self) -> None:
        self._ts_parser = Parser(TYPESCRIPT_LANGUAGE)
        self._tsx_parser = Parser(TSX_LANGUAGE)
        self._sources: Dict[str, ParsedSource] = {}
        self._revision = 0

    def parse(self, virtual_path: str, script_text: str) -> ParsedSource:
        parser = self._tsx_parser if uses_tsx_grammar(virtual_path) else self._ts_parser
        source = script_text.encode("utf-8")
        tree = parser.parse(source)
        if tree.root_node.has_error:
            # Editor buffers are often mid-edit; tree-sitter recovers, we carry on.
            logger.debug("Parsed %s with syntax errors", virtual_path)

        self._revision += 1
        parsed = ParsedSource(
            virtual_path=virtual_path,
            text=script_text,
            source=source,
            tree=tree,
            revision=self._revision,
            line_index=LineIndex(source),
        )
        self._sources[virtual_path] = parsed
        return parsed

    def get(self, virtual_path: str) -> ParsedSource | None:
        return self._sources.get(virtual_path)

    def remove(self, virtual_path: str) -> None:
        self._sources.pop(virtual_path, None)

    def clear(self) -> None:
        self._sources.clear()

    def __contains__(self, virtual_path: str) -> bool:
        return virtual_path in self._sources

    def __len__(self) -> int:
        return len(self._sources)
