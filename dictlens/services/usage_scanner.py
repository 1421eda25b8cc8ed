"""
Workspace-wide search for the call sites of one dictionary.

For every accessor call with the requested key, the bound variables are
followed forward through the file and every statically known field access is
recorded, together with the source range where it happens:

    const { title, nav: { home } } = useIntlayer("app");   // title, nav, nav.home
    title.value;                                           // title
    const content = getIntlayer("app");
    content.footer.links[0];                               // footer, footer.links, footer.links.0
    render(content);                                       // everything ("" unknown)
    content[section];                                      // everything below the root

Marking `a.b.c` as used also marks `a` and `a.b`, so intermediate groups
that were only destructured through are never reported as unused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import anyio
from tree_sitter import Node

from dictlens.config import ACCESSOR_SUFFIXES, SOURCE_EXCLUDE_GLOB, SOURCE_GLOB
from dictlens.errors import WorkspaceUnavailableError
from dictlens.models import Range, UsageLocation
from dictlens.services.declaration_tracer import (
    AccessorCall,
    accessor_call_info,
    property_key,
)
from dictlens.services.parse_context import (
    ParseContext,
    ParsedSource,
    iter_descendants,
    literal_key_value,
    node_text,
    unwrap_expression,
)
from dictlens.services.script_normalizer import is_markup_dialect, normalize
from dictlens.services.workspace import WorkspaceSearch

logger = logging.getLogger(__name__)

# Wrappers between an accessor call and the declarator it initializes.
_VALUE_WRAPPERS = {
    "parenthesized_expression",
    "await_expression",
    "as_expression",
    "satisfies_expression",
    "non_null_expression",
}

_REFERENCE_WRAPPERS = {"parenthesized_expression", "non_null_expression"}

_PATTERN_TYPES = {
    "object_pattern",
    "pair_pattern",
    "object_assignment_pattern",
    "assignment_pattern",
    "rest_pattern",
    "array_pattern",
}


def strip_accessor_suffix(path: List[str]) -> List[str]:
    """`["title", "value", "length"]` -> `["title"]`; nothing past a framework accessor is a content key."""
    for i, segment in enumerate(path):
        if segment in ACCESSOR_SUFFIXES:
            return list(path[:i])
    return list(path)


def binding_declarator(call: Node) -> Optional[Node]:
    """The `variable_declarator` whose initializer is `call`, if any."""
    current = call
    parent = current.parent
    while parent is not None and parent.type in _VALUE_WRAPPERS:
        current = parent
        parent = current.parent
    if parent is not None and parent.type == "variable_declarator":
        if parent.child_by_field_name("value") == current:
            return parent
    return None


def is_declaration_identifier(node: Node) -> bool:
    """True when `node` introduces a name rather than reading one."""
    parent = node.parent
    if parent is None:
        return False
    if parent.type == "variable_declarator" and parent.child_by_field_name("name") == node:
        return True
    if parent.type in _PATTERN_TYPES:
        if parent.type == "pair_pattern" and parent.child_by_field_name("key") == node:
            return True
        if parent.type in {"assignment_pattern", "object_assignment_pattern"}:
            return parent.child_by_field_name("left") == node
        return True
    if parent.type in {"required_parameter", "optional_parameter"}:
        return parent.child_by_field_name("pattern") == node
    if parent.type == "arrow_function":
        return parent.child_by_field_name("parameter") == node
    if parent.type in {
        "function_declaration",
        "function_expression",
        "class_declaration",
        "generator_function_declaration",
    }:
        return parent.child_by_field_name("name") == node
    if parent.type in {"import_specifier", "import_clause", "namespace_import"}:
        return True
    return False


@dataclass
class _UsageCollector:
    parsed: ParsedSource
    keys_used: Set[str] = field(default_factory=set)
    unknown_prefixes: Set[str] = field(default_factory=set)
    key_locations: Dict[str, List[Range]] = field(default_factory=dict)
    existence_only: bool = False

    def _mark_used(self, path: List[str]) -> None:
        for i in range(1, len(path) + 1):
            self.keys_used.add(".".join(path[:i]))

    def add_location(self, path: List[str], node: Node) -> None:
        if not path:
            return
        self._mark_used(path)
        key = ".".join(path)
        self.key_locations.setdefault(key, []).append(self.parsed.range_of(node))

    def mark_unknown(self, path: List[str]) -> None:
        self._mark_used(path)
        self.unknown_prefixes.add(".".join(path))

    def collect_pattern(self, pattern: Node, prefix: List[str], after_byte: int) -> None:
        for element in pattern.named_children:
            kind = element.type
            if kind == "shorthand_property_identifier_pattern":
                path = prefix + [node_text(element)]
                self.add_location(path, element)
                self.trace_variable(element, path, after_byte)
            elif kind == "object_assignment_pattern":
                left = element.child_by_field_name("left")
                if left is not None and left.type == "shorthand_property_identifier_pattern":
                    path = prefix + [node_text(left)]
                    self.add_location(path, left)
                    self.trace_variable(left, path, after_byte)
                elif left is not None and left.type == "object_pattern":
                    self.collect_pattern(left, prefix, after_byte)
                else:
                    self.mark_unknown(prefix)
            elif kind == "pair_pattern":
                key_node = element.child_by_field_name("key")
                key = property_key(key_node)
                if key is None:
                    # `{ [name]: value }`
                    self.mark_unknown(prefix)
                    continue
                path = prefix + [key]
                self.add_location(path, key_node)
                value = element.child_by_field_name("value")
                if value is not None and value.type == "assignment_pattern":
                    value = value.child_by_field_name("left")
                if value is None:
                    continue
                if value.type == "identifier":
                    self.trace_variable(value, path, after_byte)
                elif value.type == "object_pattern":
                    self.collect_pattern(value, path, after_byte)
                else:
                    self.mark_unknown(path)
            elif kind == "rest_pattern":
                inner = element.named_children[0] if element.named_children else None
                if inner is not None and inner.type == "identifier":
                    self.trace_variable(inner, prefix, after_byte)
                else:
                    self.mark_unknown(prefix)

    def trace_variable(self, binding: Node, base: List[str], after_byte: int) -> None:
        """Follow every later reference of the variable bound at `binding`."""
        name = node_text(binding)
        for ref in iter_descendants(self.parsed.root, {"identifier", "shorthand_property_identifier"}):
            if ref.start_byte < after_byte or ref == binding:
                continue
            if node_text(ref) != name or is_declaration_identifier(ref):
                continue
            self.trace_reference(ref, base)

    def trace_reference(self, ref: Node, base: List[str]) -> None:
        if ref.type == "shorthand_property_identifier":
            # `{ content }` hands the whole object on.
            self.mark_unknown(base)
            return

        segments: List[Tuple[str, Node]] = []
        current = ref
        while current.parent is not None:
            parent = current.parent
            if parent.type in _REFERENCE_WRAPPERS:
                current = parent
                continue
            if parent.type == "member_expression" and parent.child_by_field_name("object") == current:
                prop = parent.child_by_field_name("property")
                segments.append((node_text(prop), prop))
                current = parent
                continue
            if parent.type == "subscript_expression" and parent.child_by_field_name("object") == current:
                index = unwrap_expression(parent.child_by_field_name("index"))
                key = literal_key_value(index)
                if key is None:
                    self.mark_unknown(base + strip_accessor_suffix([s for s, _ in segments]))
                    return
                segments.append((key, index))
                current = parent
                continue
            break

        if not segments:
            # Passed along, spread, returned... every field may be read.
            self.mark_unknown(base)
            return

        kept = len(strip_accessor_suffix([s for s, _ in segments]))
        path = list(base)
        for seg, node in segments[:kept]:
            path.append(seg)
            self.add_location(path, node)


def _merge(
    file_path: str,
    calls: List[Tuple[Range, _UsageCollector]],
) -> UsageLocation:
    usage = UsageLocation(file_path=file_path, declaration_range=calls[0][0])
    for _, collector in calls:
        usage.keys_used.update(collector.keys_used)
        usage.unknown_prefixes.update(collector.unknown_prefixes)
        usage.existence_only = usage.existence_only or collector.existence_only
        for key, ranges in collector.key_locations.items():
            usage.key_locations.setdefault(key, []).extend(ranges)
    return usage


def iter_accessor_calls(parsed: ParsedSource) -> List[AccessorCall]:
    calls: List[AccessorCall] = []
    for call in iter_descendants(parsed.root, {"call_expression"}):
        info = accessor_call_info(call)
        if info is not None:
            calls.append(info)
    return calls


def analyze_usages(parsed: ParsedSource, dictionary_key: str, file_path: str) -> Optional[UsageLocation]:
    """Usage of `dictionary_key` in one parsed file, or None if it is never referenced."""
    found: List[Tuple[Range, _UsageCollector]] = []
    # Component templates usually sit above the script that declares the bindings.
    template_first = is_markup_dialect(Path(file_path).suffix)

    for info in iter_accessor_calls(parsed):
        if info.dictionary_key != dictionary_key:
            continue
        collector = _UsageCollector(parsed)
        declarator = binding_declarator(info.node)
        if declarator is None:
            collector.existence_only = True
        else:
            name = declarator.child_by_field_name("name")
            after = 0 if template_first else declarator.end_byte
            if name is not None and name.type == "object_pattern":
                collector.collect_pattern(name, [], after)
            elif name is not None and name.type == "identifier":
                collector.trace_variable(name, [], after)
            else:
                collector.mark_unknown([])
        found.append((parsed.range_of(info.node), collector))

    if not found:
        return None
    return _merge(file_path, found)


def analyze_text(
    parse_context: ParseContext,
    file_path: str,
    text: str,
    dictionary_key: str,
) -> Optional[UsageLocation]:
    script = normalize(text, Path(file_path).suffix)
    parsed = parse_context.parse(file_path, script)
    try:
        return analyze_usages(parsed, dictionary_key, file_path)
    finally:
        parse_context.remove(file_path)


async def find_usages(
    project_root: Path | str | None,
    dictionary_key: str,
    *,
    workspace: WorkspaceSearch,
    parse_context: ParseContext,
) -> List[UsageLocation]:
    """
    Every file under `project_root` that reads `dictionary_key`.

    A file that fails to read or parse is logged and skipped; the scan goes on.
    An empty result means the dictionary is not used anywhere.
    """
    if project_root is None:
        raise WorkspaceUnavailableError()
    root = Path(project_root)
    if not root.is_dir():
        raise WorkspaceUnavailableError(str(root))

    candidates = await workspace.find_files(root, SOURCE_GLOB, SOURCE_EXCLUDE_GLOB)
    usages: List[UsageLocation] = []

    for file_path in candidates:
        try:
            text = await workspace.read_text(file_path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read %s: %s", file_path, exc)
            continue

        # Cheap pre-filter before parsing anything.
        if dictionary_key not in text:
            continue

        try:
            usage = analyze_text(parse_context, str(file_path), text, dictionary_key)
        except Exception as exc:
            logger.warning("Error parsing %s: %s", file_path, exc)
            continue

        if usage is not None:
            usages.append(usage)
        await anyio.sleep(0)

    return usages
