"""
Typed view over dictionary content trees.

Raw dictionary JSON marks special nodes with a `nodeType` field. Instead of
probing dicts for keys at every use site, content is parsed once into a small
tagged union and every consumer matches on `ContentKind`.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from dictlens.config import (
    CORE_MODULE,
    DECORATION_TRUNCATE_LENGTH,
    FALLBACK_LOCALE,
    SKIPPED_PATH_SEGMENTS,
)


class ContentKind(str, Enum):
    PRIMITIVE = "primitive"
    TRANSLATION = "translation"
    MARKDOWN = "markdown"
    HTML = "html"
    INSERTION = "insertion"
    OBJECT = "object"


@dataclass
class PrimitiveNode:
    value: Any
    kind: ContentKind = field(default=ContentKind.PRIMITIVE, init=False)


@dataclass
class TranslationNode:
    translation: Dict[str, "ContentNode"]
    kind: ContentKind = field(default=ContentKind.TRANSLATION, init=False)


@dataclass
class MarkdownNode:
    content: "ContentNode"
    kind: ContentKind = field(default=ContentKind.MARKDOWN, init=False)


@dataclass
class HtmlNode:
    content: "ContentNode"
    kind: ContentKind = field(default=ContentKind.HTML, init=False)


@dataclass
class InsertionNode:
    content: "ContentNode"
    kind: ContentKind = field(default=ContentKind.INSERTION, init=False)


@dataclass
class ObjectNode:
    fields: Dict[str, "ContentNode"]
    # The JSON the node was built from, for display.
    raw: Any = None
    kind: ContentKind = field(default=ContentKind.OBJECT, init=False)


ContentNode = Union[PrimitiveNode, TranslationNode, MarkdownNode, HtmlNode, InsertionNode, ObjectNode]

_WRAPPER_KINDS = {
    "markdown": MarkdownNode,
    "html": HtmlNode,
    "insertion": InsertionNode,
}


def parse_content(raw: Any) -> ContentNode:
    """Build the typed tree for a raw JSON content value."""
    if isinstance(raw, list):
        return ObjectNode(fields={str(i): parse_content(v) for i, v in enumerate(raw)}, raw=raw)
    if not isinstance(raw, dict):
        return PrimitiveNode(raw)

    node_type = raw.get("nodeType")
    if node_type == "translation" and isinstance(raw.get("translation"), dict):
        return TranslationNode({loc: parse_content(v) for loc, v in raw["translation"].items()})
    if node_type in _WRAPPER_KINDS:
        inner = raw.get(node_type, raw.get("content"))
        return _WRAPPER_KINDS[node_type](parse_content(inner))
    return ObjectNode(fields={k: parse_content(v) for k, v in raw.items()}, raw=raw)


def to_json(node: ContentNode) -> Any:
    """Plain JSON value for a node (used for hover dumps)."""
    if node.kind is ContentKind.PRIMITIVE:
        return node.value
    if node.kind is ContentKind.TRANSLATION:
        return {"nodeType": "translation", "translation": {k: to_json(v) for k, v in node.translation.items()}}
    if node.kind in (ContentKind.MARKDOWN, ContentKind.HTML, ContentKind.INSERTION):
        return {"nodeType": node.kind.value, node.kind.value: to_json(node.content)}
    if node.kind is ContentKind.OBJECT:
        if node.raw is not None:
            return node.raw
        return {k: to_json(v) for k, v in node.fields.items()}
    raise AssertionError(f"Unhandled content kind: {node.kind}")


def traverse(node: ContentNode, path: List[str], skip_accessors: bool = True) -> Optional[ContentNode]:
    """
    Follow `path` through object fields. Returns None if any key is absent.

    Framework accessors (`use`, `value`, `raw`) are skipped when
    `skip_accessors` is set since they never name content keys.
    """
    current: ContentNode = node
    for key in path:
        if skip_accessors and key in SKIPPED_PATH_SEGMENTS:
            continue
        if current.kind is not ContentKind.OBJECT or key not in current.fields:
            return None
        current = current.fields[key]
    return current


def _pick_translation(node: TranslationNode, locale: str) -> Optional[ContentNode]:
    if locale in node.translation:
        return node.translation[locale]
    if FALLBACK_LOCALE in node.translation:
        return node.translation[FALLBACK_LOCALE]
    for value in node.translation.values():
        return value
    return None


def localize(node: Optional[ContentNode], locale: str) -> Optional[ContentNode]:
    """Unwrap markdown/html/insertion wrappers and pick the translation for `locale`."""
    current = node
    while current is not None:
        if current.kind in (ContentKind.MARKDOWN, ContentKind.HTML, ContentKind.INSERTION):
            current = current.content
        elif current.kind is ContentKind.TRANSLATION:
            current = _pick_translation(current, locale)
        else:
            return current
    return None


def value_at(node: ContentNode, path: List[str], locale: str) -> Any:
    """Localized plain value at `path`, or None."""
    target = localize(traverse(node, path), locale)
    if target is None:
        return None
    return to_json(target)


def _primitive_type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if value is None:
        return "null"
    return "object"


def describe_type(node: ContentNode, module_source: Optional[str], accessor_used: bool) -> str:
    """
    Type label shown on hover.

    The core module hands out raw content, so translations show their
    primitive type. Framework packages wrap leaves in nodes unless `.value`
    or `.raw` was read.
    """
    if node.kind is ContentKind.TRANSLATION:
        first = next(iter(node.translation.values()), None)
        primitive = (
            _primitive_type_name(first.value)
            if first is not None and first.kind is ContentKind.PRIMITIVE
            else ("Object" if first is not None else "unknown")
        )
        if module_source == CORE_MODULE or accessor_used:
            return primitive
        return "IntlayerNode"
    if node.kind in (ContentKind.MARKDOWN, ContentKind.HTML, ContentKind.INSERTION):
        return node.kind.value
    if node.kind is ContentKind.OBJECT:
        return "Object"
    if node.kind is ContentKind.PRIMITIVE:
        return _primitive_type_name(node.value)
    raise AssertionError(f"Unhandled content kind: {node.kind}")


def content_keys(fields: Dict[str, ContentNode], prefix: str = "") -> List[str]:
    """Every dotted key below an object, groups included."""
    keys: List[str] = []
    for name, child in fields.items():
        full = f"{prefix}.{name}" if prefix else name
        keys.append(full)
        if child.kind is ContentKind.OBJECT:
            keys.extend(content_keys(child.fields, full))
    return keys


def _is_element_like(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and "props" in value
        and (value.get("key") is None or isinstance(value.get("key"), str))
    )


def _element_text(value: Any) -> str:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        return "".join(_element_text(v) for v in value)
    if isinstance(value, dict):
        props = value.get("props")
        if isinstance(props, dict) and props.get("children") is not None:
            return _element_text(props["children"])
    return ""


def display_text(value: Any, limit: int = DECORATION_TRUNCATE_LENGTH) -> Optional[str]:
    """
    One-line summary of a localized value for inline hints.

    Structural objects (groups of keys) have no summary and give None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value
    elif isinstance(value, (int, float)):
        text = str(value)
    elif isinstance(value, list):
        parts = [display_text(v, limit=10_000) for v in value]
        text = "".join(p for p in parts if p)
    elif _is_element_like(value):
        text = _element_text(value)
    else:
        return None

    text = re.sub(r"\s+", " ", text).strip()
    if not text:
        return None
    if len(text) > limit:
        return f"{text[:limit]}..."
    return text


def dump_json(node: ContentNode) -> str:
    return json.dumps(to_json(node), indent=2, ensure_ascii=False)
