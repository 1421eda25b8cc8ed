from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from tree_sitter import Node

from dictlens.models import Position
from dictlens.services.parse_context import (
    ParsedSource,
    literal_key_value,
    node_text,
    unwrap_expression,
)

# Nodes that can sit at the left end of an access chain.
ROOT_NODE_TYPES = {
    "identifier",
    "shorthand_property_identifier",
    "shorthand_property_identifier_pattern",
}

_STRING_NODE_TYPES = {
    "string",
    "string_fragment",
    "template_string",
    "escape_sequence",
    "jsx_text",
}

_WRAPPER_TYPES = {
    "parenthesized_expression",
    "non_null_expression",
    "as_expression",
    "satisfies_expression",
    "await_expression",
}


@dataclass
class ChainResult:
    root: Optional[Node]
    path: List[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.root is not None


def _start_node(node: Node) -> Optional[Node]:
    """
    Lift the node under the cursor to the expression that ends at it.

    Hovering `title` in `content.title.value` starts from the
    `content.title` member expression, so the chain stops at the hovered word.
    """
    parent = node.parent
    if node.type in {"property_identifier", "private_property_identifier"}:
        if (
            parent is not None
            and parent.type == "member_expression"
            and parent.child_by_field_name("property") == node
        ):
            return parent
        return None
    if node.type == "identifier" and parent is not None and parent.type == "nested_identifier":
        # JSX member tags in older grammars: <content.Title />
        if parent.named_children and parent.named_children[-1] == node:
            return parent
    if node.type in ROOT_NODE_TYPES or node.type in {"member_expression", "nested_identifier"}:
        return node
    return None


def resolve_chain(node: Node | None) -> ChainResult:
    """
    Recover the root identifier and the access path that leads to `node`.

    The walk goes from the hovered node back to the root of the chain, so
    segments are prepended as they are found. Call wrappers (`a.b().c`) are
    passed through without adding a segment. A string literal under the
    cursor is ambiguous (key argument? computed property?) and never
    resolves.
    """
    if node is None or node.type in _STRING_NODE_TYPES:
        return ChainResult(root=None)

    current = _start_node(node)
    segments: List[str] = []

    while current is not None:
        kind = current.type
        if kind in ROOT_NODE_TYPES:
            return ChainResult(root=current, path=segments)
        if kind == "member_expression":
            prop = current.child_by_field_name("property")
            segments.insert(0, node_text(prop))
            current = current.child_by_field_name("object")
        elif kind == "subscript_expression":
            key = literal_key_value(unwrap_expression(current.child_by_field_name("index")))
            if key is None:
                return ChainResult(root=None)
            segments.insert(0, key)
            current = current.child_by_field_name("object")
        elif kind == "call_expression":
            current = current.child_by_field_name("function")
        elif kind == "nested_identifier":
            named = current.named_children
            if len(named) < 2:
                return ChainResult(root=None)
            segments.insert(0, node_text(named[-1]))
            current = named[0]
        elif kind in _WRAPPER_TYPES:
            current = unwrap_expression(current)
        else:
            break

    return ChainResult(root=None)


def resolve_chain_at(parsed: ParsedSource, position: Position) -> ChainResult:
    return resolve_chain(parsed.node_at(position))
