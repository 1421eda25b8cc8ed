from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

import anyio
from tree_sitter import Node

from dictlens.config import STRUCTURED_DATA_EXTENSIONS
from dictlens.models import Position
from dictlens.services.declaration_tracer import property_key
from dictlens.services.parse_context import (
    ParseContext,
    ParsedSource,
    node_text,
    unwrap_expression,
)

logger = logging.getLogger(__name__)

_LOCATOR_VIRTUAL_PATH_PREFIX = "__field_locator__"


def locate_in_json(content: str, field_path: List[str]) -> Optional[Position]:
    """
    Position of the last key of `field_path` in JSON-ish text.

    Each key is searched for after the previous match, so a key name that
    repeats at different depths resolves to the occurrence under its parent.
    """
    cursor = 0
    match = None
    for key in field_path:
        pattern = re.compile(r"([\"'])" + re.escape(key) + r"\1\s*:")
        match = pattern.search(content, cursor)
        if match is None:
            return None
        cursor = match.end()

    if match is None:
        return None
    before = content[: match.start()]
    line = before.count("\n")
    character = len(before) - (before.rfind("\n") + 1)
    return Position(line=line, character=character)


def _find_variable_initializer(parsed: ParsedSource, name: str) -> Optional[Node]:
    for statement in parsed.root.named_children:
        declaration = statement
        if statement.type == "export_statement":
            declaration = statement.child_by_field_name("declaration")
            if declaration is None:
                continue
        if declaration.type not in {"lexical_declaration", "variable_declaration"}:
            continue
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            if name_node is not None and node_text(name_node) == name:
                return declarator.child_by_field_name("value")
    return None


def _default_export_value(statement: Node) -> Optional[Node]:
    if statement.type != "export_statement":
        return None
    if not any(child.type == "default" for child in statement.children):
        return None
    value = statement.child_by_field_name("value")
    if value is not None:
        return value
    # Some grammar versions keep the expression as a plain named child.
    for child in statement.named_children:
        if child.type not in {"comment", "decorator"}:
            return child
    return None


def find_exported_object(parsed: ParsedSource) -> Optional[Node]:
    """
    The object literal a content declaration file exports by default.

    Handles `export default { ... }`, `export default content` with
    `const content = { ... }`, and `satisfies`/`as` wrappers around either.
    """
    for statement in parsed.root.named_children:
        value = unwrap_expression(_default_export_value(statement))
        if value is None:
            continue
        if value.type == "identifier":
            value = unwrap_expression(_find_variable_initializer(parsed, node_text(value)))
        if value is not None and value.type == "object":
            return value
        return None
    return None


def _unwrap_builder_call(node: Node | None) -> Optional[Node]:
    """`t({ en: ..., fr: ... })` -> the object argument."""
    node = unwrap_expression(node)
    while node is not None and node.type == "call_expression":
        arguments = node.child_by_field_name("arguments")
        if arguments is None or arguments.type != "arguments":
            return None
        args = [a for a in arguments.named_children if a.type != "comment"]
        if len(args) != 1:
            return None
        node = unwrap_expression(args[0])
    return node


def find_object_property(obj: Node, key: str) -> Optional[Node]:
    """The `pair` (or shorthand) of an object literal whose key is `key`."""
    for prop in obj.named_children:
        if prop.type == "pair":
            if property_key(prop.child_by_field_name("key")) == key:
                return prop
        elif prop.type == "shorthand_property_identifier":
            if node_text(prop) == key:
                return prop
    return None


def locate_in_object(root_object: Node, field_path: List[str]) -> Optional[Node]:
    """
    Descend `field_path` through nested object literals and builder calls.

    Returns the key node of the last segment. Any missing segment is a miss;
    there is no nearest-match fallback.
    """
    current: Optional[Node] = root_object
    found: Optional[Node] = None
    for key in field_path:
        current = _unwrap_builder_call(current)
        if current is None or current.type != "object":
            return None
        prop = find_object_property(current, key)
        if prop is None:
            return None
        if prop.type == "pair":
            found = prop.child_by_field_name("key")
            current = prop.child_by_field_name("value")
        else:
            found = prop
            current = None
    return found


def locate_in_script(parsed: ParsedSource, field_path: List[str]) -> Optional[Position]:
    root_object = find_exported_object(parsed)
    if root_object is None or not field_path:
        return None
    key_node = locate_in_object(root_object, field_path)
    if key_node is None:
        return None
    return parsed.position_of(key_node)


async def locate_field(
    file_path: str | Path,
    field_path: List[str],
    parse_context: Optional[ParseContext] = None,
) -> Optional[Position]:
    """
    Where the field `field_path` is declared inside a content file.

    Works for JSON-like files and for script files exporting the content
    object. Returns None when the file or any segment is missing.
    """
    try:
        text = await anyio.Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Cannot read %s: %s", file_path, exc)
        return None
    return locate_field_in_text(file_path, text, field_path, parse_context)


def locate_field_in_text(
    file_path: str | Path,
    text: str,
    field_path: List[str],
    parse_context: Optional[ParseContext] = None,
) -> Optional[Position]:
    path = Path(file_path)
    if path.suffix.lower() in STRUCTURED_DATA_EXTENSIONS:
        return locate_in_json(text, field_path)

    context = parse_context or ParseContext()
    # The virtual path keeps the real suffix so the right grammar is picked.
    virtual_path = f"{_LOCATOR_VIRTUAL_PATH_PREFIX}{path.suffix}"
    try:
        parsed = context.parse(virtual_path, text)
        return locate_in_script(parsed, field_path)
    except Exception as exc:
        logger.warning("Error finding field location in %s: %s", path, exc)
        return None
    finally:
        context.remove(virtual_path)
