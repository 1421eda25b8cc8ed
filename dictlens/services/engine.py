"""
Editor-facing operations.

Every operation receives the `EngineContext` that owns the parse arena,
the caches and the host collaborators; nothing here keeps module-level
state. Absent data (no dictionary, no field, cursor on something that is
not a dictionary access) yields None or an empty list. Only a missing
workspace raises.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import anyio
from tree_sitter import Node

from dictlens.config import (
    ACCESSOR_NAMES,
    ACCESSOR_SUFFIXES,
    CONTENT_USAGE_CACHE_TTL,
    DECORATION_DEBOUNCE_DELAY,
    STRUCTURED_DATA_EXTENSIONS,
    UNUSED_DEBOUNCE_DELAY,
)
from dictlens.errors import WorkspaceUnavailableError
from dictlens.models import (
    DefinitionTarget,
    DictionaryRecord,
    HoverEntry,
    HoverInfo,
    InlineDecoration,
    LocationLink,
    Position,
    ProjectConfig,
    Range,
    ResolutionOrigin,
    UnusedKey,
    UnusedReport,
    UsageLocation,
)
from dictlens.services.cache import (
    Clock,
    ConfigCache,
    DictionaryCache,
    UsageCache,
    get_dictionary_path,
)
from dictlens.services.content import (
    ContentKind,
    content_keys,
    describe_type,
    display_text,
    dump_json,
    parse_content,
    to_json,
    traverse,
    value_at,
)
from dictlens.services.debounce import Debouncer
from dictlens.services.declaration_tracer import (
    find_import_source,
    property_key,
    trace_declaration,
)
from dictlens.services.field_locator import locate_field, locate_in_json
from dictlens.services.parse_context import ParseContext, ParsedSource, iter_descendants, node_text
from dictlens.services.project import ProjectRootFinder, find_all_project_roots, load_project_config
from dictlens.services.property_chain import resolve_chain_at
from dictlens.services.script_normalizer import normalize
from dictlens.services.usage_scanner import (
    binding_declarator,
    find_usages,
    is_declaration_identifier,
    iter_accessor_calls,
    strip_accessor_suffix,
)
from dictlens.services.workspace import FileSystemWorkspace, WorkspaceSearch

logger = logging.getLogger(__name__)

_DICTIONARY_KEY_RE = re.compile(r"""["']?\bkey["']?\s*:\s*(["'])(.*?)\1""")
_WORD_RE = re.compile(r"[\w$\-'\"]+")
_STRING_LITERAL_RE = re.compile(r"'[^']+'|\"[^\"]+\"")

_UNUSED_VIRTUAL_PATH = "__unused_keys__"
_DECORATION_VIRTUAL_PATH = "__decorations__"


@dataclass
class EngineContext:
    workspace: WorkspaceSearch
    find_project_root: Callable[[Optional[str]], Awaitable[Optional[str]]]
    parse_context: ParseContext = field(default_factory=ParseContext)
    config_loader: Callable[[str], Awaitable[ProjectConfig]] = load_project_config
    config_cache: ConfigCache = field(default_factory=ConfigCache)
    dictionary_cache: DictionaryCache = field(default_factory=DictionaryCache)
    usage_cache: UsageCache = field(default_factory=UsageCache)
    content_usage_cache: UsageCache = field(
        default_factory=lambda: UsageCache(ttl=CONTENT_USAGE_CACHE_TTL)
    )
    workspace_root: Optional[Path] = None
    decoration_debounce_delay: float = DECORATION_DEBOUNCE_DELAY
    unused_debounce_delay: float = UNUSED_DEBOUNCE_DELAY
    # One debouncer per (operation, document) while calls are pending.
    debouncers: Dict[Tuple[str, str], Debouncer] = field(default_factory=dict)

    @classmethod
    def for_workspace(cls, root: Optional[Path], clock: Clock = time.monotonic) -> "EngineContext":
        workspace_root = Path(root).resolve() if root is not None else None
        return cls(
            workspace=FileSystemWorkspace(workspace_root),
            find_project_root=ProjectRootFinder(workspace_root),
            config_cache=ConfigCache(clock=clock),
            usage_cache=UsageCache(clock=clock),
            content_usage_cache=UsageCache(ttl=CONTENT_USAGE_CACHE_TTL, clock=clock),
            workspace_root=workspace_root,
        )


# ---------- shared helpers ----------


async def read_document(file_path: str, text: Optional[str] = None) -> Optional[str]:
    """The editor buffer when given, otherwise the file on disk."""
    if text is not None:
        return text
    try:
        return await anyio.Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


async def project_dir_for(engine: EngineContext, file_path: str) -> str:
    project_dir = await engine.find_project_root(str(Path(file_path).parent))
    if project_dir is None:
        raise WorkspaceUnavailableError()
    return project_dir


async def get_config(engine: EngineContext, project_dir: str) -> ProjectConfig:
    return await engine.config_cache.get_or_load(project_dir, engine.config_loader)


async def load_dictionary_records(
    engine: EngineContext, config: ProjectConfig, dictionary_key: str
) -> Optional[List[DictionaryRecord]]:
    path = get_dictionary_path(config.unmerged_dictionaries_dir, dictionary_key)
    return await engine.dictionary_cache.load_records(path)


async def cached_usages(
    engine: EngineContext,
    project_dir: str,
    dictionary_key: str,
    cache: Optional[UsageCache] = None,
) -> List[UsageLocation]:
    cache = cache if cache is not None else engine.usage_cache
    cache_key = cache.key_for(project_dir, dictionary_key)
    usages = cache.get(cache_key)
    if usages is None:
        usages = await find_usages(
            project_dir,
            dictionary_key,
            workspace=engine.workspace,
            parse_context=engine.parse_context,
        )
        cache.set(cache_key, usages)
    return usages


def _position_at(text: str, index: int) -> Position:
    before = text[:index]
    line = before.count("\n")
    return Position(line=line, character=len(before) - (before.rfind("\n") + 1))


def _line_text(text: str, line: int) -> str:
    lines = text.split("\n")
    if line < 0 or line >= len(lines):
        return ""
    return lines[line]


def _span_at(line_text: str, character: int, pattern: re.Pattern) -> Optional[str]:
    for match in pattern.finditer(line_text):
        if match.start() <= character <= match.end():
            return match.group(0)
    return None


def _parse_document(engine: EngineContext, virtual_path: str, text: str) -> ParsedSource:
    return engine.parse_context.parse(virtual_path, normalize(text, Path(virtual_path).suffix))


# ---------- resolution ----------


def resolve_origin(engine: EngineContext, file_path: str, text: str, position: Position) -> Optional[ResolutionOrigin]:
    """Dictionary key and field path behind the expression under the cursor."""
    parsed = _parse_document(engine, file_path, text)
    chain = resolve_chain_at(parsed, position)
    if not chain.resolved:
        return None

    trace = trace_declaration(parsed, chain.root)
    if trace is None:
        return None

    return ResolutionOrigin(
        dictionary_key=trace.dictionary_key,
        field_path=trace.initial_path + chain.path,
        module_source=find_import_source(parsed, trace.accessor_function_name),
    )


def _clean_path(field_path: List[str]) -> Tuple[List[str], bool]:
    """Drop a trailing `.value`/`.raw`; report whether one was there."""
    if field_path and field_path[-1] in ACCESSOR_SUFFIXES:
        return field_path[:-1], True
    return list(field_path), False


async def hover(engine: EngineContext, file_path: str, text: str, position: Position) -> Optional[HoverInfo]:
    origin = resolve_origin(engine, file_path, text, position)
    if origin is None:
        return None

    clean_path, accessor_used = _clean_path(origin.field_path)
    project_dir = await project_dir_for(engine, file_path)
    config = await get_config(engine, project_dir)

    records = await load_dictionary_records(engine, config, origin.dictionary_key)
    if records is None:
        return None

    display_type = "unknown"
    for record in records:
        if record.is_remote_only:
            continue
        node = traverse(parse_content(record.content), clean_path)
        if node is not None:
            display_type = describe_type(node, origin.module_source, accessor_used)
            break

    entries: List[HoverEntry] = []
    for record in records:
        if record.is_remote_only:
            entries.append(
                HoverEntry(
                    kind="remote",
                    dashboard_url=f"{config.cms_url}/dictionary/{origin.dictionary_key}",
                )
            )
            continue

        node = traverse(parse_content(record.content), clean_path)
        if node is None:
            continue

        source = str(Path(project_dir) / record.file_path) if record.file_path else None
        if node.kind is ContentKind.TRANSLATION:
            entries.append(
                HoverEntry(
                    kind="translation",
                    file_path=source,
                    translations={locale: to_json(value) for locale, value in node.translation.items()},
                )
            )
        elif node.kind is ContentKind.PRIMITIVE:
            entries.append(HoverEntry(kind="value", file_path=source, value=node.value))
        else:
            entries.append(HoverEntry(kind="object", file_path=source, json_text=dump_json(node)))

    return HoverInfo(
        dictionary_key=origin.dictionary_key,
        path=".".join(clean_path) or "root",
        type=display_type,
        entries=entries,
    )


async def definitions(engine: EngineContext, file_path: str, text: str, position: Position) -> List[DefinitionTarget]:
    """Declaration sites of the field under the cursor, one per local content file."""
    origin = resolve_origin(engine, file_path, text, position)
    if origin is None:
        return []

    clean_path, _ = _clean_path(origin.field_path)
    project_dir = await project_dir_for(engine, file_path)
    config = await get_config(engine, project_dir)

    records = await load_dictionary_records(engine, config, origin.dictionary_key)
    if not records:
        return []

    targets: List[DefinitionTarget] = []
    for record in records:
        if record.location != "local" or not record.file_path:
            continue
        source = Path(project_dir) / record.file_path
        if not source.exists():
            continue

        location = await locate_field(source, ["content", *clean_path], engine.parse_context)
        start = location or Position(line=0, character=0)
        targets.append(
            DefinitionTarget(
                file_path=str(source),
                range=Range(start=start, end=start),
                exact=location is not None,
            )
        )
    return targets


# ---------- content declaration files ----------


def dictionary_key_in(text: str) -> Optional[re.Match]:
    return _DICTIONARY_KEY_RE.search(text)


async def content_definitions(
    engine: EngineContext, file_path: str, text: str, position: Position
) -> List[LocationLink]:
    """
    From a content declaration file, jump to where the dictionary or one of
    its fields is used.
    """
    key_match = dictionary_key_in(text)
    if key_match is None:
        return []
    dictionary_key = key_match.group(2)

    word = _span_at(_line_text(text, position.line), position.character, _WORD_RE)
    if not word:
        return []
    clicked = word.strip("'\"")
    clicked_dictionary = clicked in (dictionary_key, "key")

    project_dir = await project_dir_for(engine, file_path)
    usages = await cached_usages(engine, project_dir, dictionary_key, engine.content_usage_cache)

    links: List[LocationLink] = []
    for usage in usages:
        if clicked_dictionary:
            links.append(LocationLink(file_path=usage.file_path, range=usage.declaration_range))
            continue

        precise: List[Range] = []
        for key, ranges in usage.key_locations.items():
            if key == clicked or key.endswith("." + clicked):
                precise.extend(ranges)

        if precise:
            links.extend(LocationLink(file_path=usage.file_path, range=r) for r in precise)
        elif usage.uses_all_fields():
            links.append(LocationLink(file_path=usage.file_path, range=usage.declaration_range))
    return links


def _object_property(obj: Node, name: str) -> Optional[Node]:
    for prop in obj.named_children:
        if prop.type == "pair" and property_key(prop.child_by_field_name("key")) == name:
            return prop
    return None


def _declared_keys(obj: Node, prefix: str = "") -> List[Tuple[str, Node]]:
    """Dotted keys of a content object literal with their key nodes. Calls are leaves."""
    keys: List[Tuple[str, Node]] = []
    for prop in obj.named_children:
        if prop.type != "pair":
            continue
        key_node = prop.child_by_field_name("key")
        name = property_key(key_node)
        if name is None:
            continue
        full = f"{prefix}.{name}" if prefix else name
        keys.append((full, key_node))
        value = prop.child_by_field_name("value")
        if value is not None and value.type == "object":
            keys.extend(_declared_keys(value, full))
    return keys


def _script_content_keys(engine: EngineContext, file_path: str, text: str) -> List[Tuple[str, Range]]:
    virtual_path = f"{_UNUSED_VIRTUAL_PATH}{Path(file_path).suffix}"
    parsed = _parse_document(engine, virtual_path, text)
    try:
        for obj in iter_descendants(parsed.root, {"object"}):
            if _object_property(obj, "key") is None:
                continue
            content = _object_property(obj, "content")
            if content is None:
                continue
            value = content.child_by_field_name("value")
            if value is None or value.type != "object":
                return []
            return [(key, parsed.range_of(node)) for key, node in _declared_keys(value)]
        return []
    finally:
        engine.parse_context.remove(virtual_path)


def _json_content_keys(text: str) -> List[Tuple[str, Range]]:
    try:
        data = json.loads(text)
    except ValueError as e:
        logger.debug("Content file is not plain JSON: %s", e)
        return []
    if not isinstance(data, dict) or not isinstance(data.get("content"), dict):
        return []

    root = parse_content(data["content"])
    if root.kind is not ContentKind.OBJECT:
        return []

    keys: List[Tuple[str, Range]] = []
    for key in content_keys(root.fields):
        segments = key.split(".")
        start = locate_in_json(text, ["content", *segments])
        if start is None:
            continue
        end = Position(line=start.line, character=start.character + len(segments[-1]) + 2)
        keys.append((key, Range(start=start, end=end)))
    return keys


async def unused_keys(engine: EngineContext, file_path: str, text: str) -> Optional[UnusedReport]:
    """
    Unused parts of the dictionary declared in a content file.

    With no usage anywhere, the dictionary itself is reported and its fields
    are not. Otherwise every declared key, groups included, that no usage
    covers is reported.
    """
    key_match = dictionary_key_in(text)
    if key_match is None or "content" not in text:
        return None
    dictionary_key = key_match.group(2)

    project_dir = await project_dir_for(engine, file_path)
    usages = await cached_usages(engine, project_dir, dictionary_key)

    report = UnusedReport(dictionary_key=dictionary_key, dictionary_used=bool(usages))
    if not usages:
        report.unused.append(
            UnusedKey(
                key=dictionary_key,
                range=Range(
                    start=_position_at(text, key_match.start()),
                    end=_position_at(text, key_match.end()),
                ),
                message="This dictionary is never used in the project",
            )
        )
        return report

    if Path(file_path).suffix.lower() in STRUCTURED_DATA_EXTENSIONS:
        declared = _json_content_keys(text)
    else:
        declared = _script_content_keys(engine, file_path, text)

    for key, key_range in declared:
        if any(usage.is_field_used(key) for usage in usages):
            continue
        report.unused.append(UnusedKey(key=key, range=key_range, message=f"Property '{key}' is unused"))
    return report


# ---------- inline values ----------


def _bound_variables(call: Node) -> List[Tuple[Node, List[str]]]:
    """Local names bound by `const ... = accessor(...)` with their content path."""
    declarator = binding_declarator(call)
    if declarator is None:
        return []
    pattern = declarator.child_by_field_name("name")
    if pattern is None:
        return []
    if pattern.type == "identifier":
        return [(pattern, [])]
    if pattern.type != "object_pattern":
        return []

    variables: List[Tuple[Node, List[str]]] = []
    for element in pattern.named_children:
        if element.type == "shorthand_property_identifier_pattern":
            variables.append((element, [node_text(element)]))
        elif element.type == "object_assignment_pattern":
            left = element.child_by_field_name("left")
            if left is not None and left.type == "shorthand_property_identifier_pattern":
                variables.append((left, [node_text(left)]))
        elif element.type == "pair_pattern":
            key = property_key(element.child_by_field_name("key"))
            value = element.child_by_field_name("value")
            if value is not None and value.type == "assignment_pattern":
                value = value.child_by_field_name("left")
            if key is not None and value is not None and value.type == "identifier":
                variables.append((value, [key]))
    return variables


def _member_chain(ref: Node) -> Tuple[List[str], Node]:
    path: List[str] = []
    current = ref
    parent = current.parent
    while (
        parent is not None
        and parent.type == "member_expression"
        and parent.child_by_field_name("object") == current
    ):
        path.append(node_text(parent.child_by_field_name("property")))
        current = parent
        parent = current.parent
    return path, current


async def decorations(engine: EngineContext, file_path: str, text: str) -> List[InlineDecoration]:
    """Localized value of each dictionary field read in the file, at most one per line."""
    project_dir = await project_dir_for(engine, file_path)
    config = await get_config(engine, project_dir)

    virtual_path = f"{_DECORATION_VIRTUAL_PATH}{Path(file_path).suffix}"
    parsed = _parse_document(engine, virtual_path, text)
    try:
        result: List[InlineDecoration] = []
        seen_lines = set()

        for call in iter_accessor_calls(parsed):
            variables = _bound_variables(call.node)
            if not variables:
                continue

            records = await load_dictionary_records(engine, config, call.dictionary_key)
            if not records:
                continue
            content = parse_content(records[0].content)

            for binding, initial_path in variables:
                name = node_text(binding)
                for ref in iter_descendants(parsed.root, {"identifier"}):
                    if ref == binding or node_text(ref) != name or is_declaration_identifier(ref):
                        continue
                    path, range_node = _member_chain(ref)
                    value = value_at(content, initial_path + strip_accessor_suffix(path), config.default_locale)
                    summary = display_text(value)
                    if summary is None:
                        continue
                    line = parsed.line_index.position_at(range_node.end_byte).line
                    if line in seen_lines:
                        continue
                    seen_lines.add(line)
                    result.append(InlineDecoration(line=line, text=summary))
        return result
    finally:
        engine.parse_context.remove(virtual_path)


# ---------- dictionary lookups ----------


async def redirect_key_to_dictionary(
    engine: EngineContext, file_path: str, text: str, position: Position
) -> Optional[LocationLink]:
    """From the key literal of an accessor call, jump to the file declaring that dictionary."""
    line_text = _line_text(text, position.line)
    literal = _span_at(line_text, position.character, _STRING_LITERAL_RE)
    if literal is None:
        return None
    if not any(name in line_text for name in ACCESSOR_NAMES):
        return None

    dictionary_key = literal[1:-1]
    project_dir = await project_dir_for(engine, file_path)
    config = await get_config(engine, project_dir)

    data = await engine.dictionary_cache.load_json(get_dictionary_path(config.dictionaries_dir, dictionary_key))
    if not isinstance(data, dict) or not isinstance(data.get("filePath"), str):
        return None

    origin = Position(line=0, character=0)
    return LocationLink(
        file_path=str(Path(project_dir) / data["filePath"]),
        range=Range(start=origin, end=origin),
    )


def resolve_project(engine: EngineContext, project: Optional[str]) -> str:
    if project:
        if not Path(project).is_dir():
            raise WorkspaceUnavailableError(project)
        return str(Path(project).resolve())
    return str(engine.workspace.require_root())


async def dictionary_usages(engine: EngineContext, dictionary_key: str, project: Optional[str] = None) -> List[UsageLocation]:
    return await cached_usages(engine, resolve_project(engine, project), dictionary_key)


async def dictionary_records(
    engine: EngineContext, dictionary_key: str, project: Optional[str] = None
) -> Optional[List[DictionaryRecord]]:
    config = await get_config(engine, resolve_project(engine, project))
    return await load_dictionary_records(engine, config, dictionary_key)


async def project_roots(engine: EngineContext) -> List[str]:
    """Every project under the workspace that depends on the dictionary framework."""
    return await find_all_project_roots(engine.workspace.require_root(), engine.workspace)


async def _debounced(
    engine: EngineContext,
    operation: str,
    delay: float,
    fn: Callable[..., Awaitable[Any]],
    file_path: str,
    *args: Any,
) -> Optional[Any]:
    key = (operation, file_path)
    debouncer = engine.debouncers.get(key)
    if debouncer is None:
        debouncer = engine.debouncers[key] = Debouncer(delay)
    try:
        return await debouncer.run(fn, engine, file_path, *args)
    finally:
        if debouncer.idle and engine.debouncers.get(key) is debouncer:
            del engine.debouncers[key]


async def debounced_decorations(
    engine: EngineContext, file_path: str, text: str
) -> Optional[List[InlineDecoration]]:
    """`decorations` for the latest of a burst of edits; None for superseded calls."""
    return await _debounced(
        engine, "decorations", engine.decoration_debounce_delay, decorations, file_path, text
    )


async def debounced_unused_keys(engine: EngineContext, file_path: str, text: str) -> Optional[UnusedReport]:
    return await _debounced(engine, "unused", engine.unused_debounce_delay, unused_keys, file_path, text)
