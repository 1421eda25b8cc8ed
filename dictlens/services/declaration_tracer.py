"""
Trace an identifier back to the dictionary accessor call that produced it.

Binding lookup is two-tier:

1. Lexical lookup: walk the enclosing scopes of the identifier (blocks,
   function parameters, the module) and take the nearest declaration of the
   name. This is a lightweight stand-in for a symbol table.
2. Structural fallback, used only when the lexical walk finds nothing: scan
   the whole file for a declarator (or import) binding the same name, also
   accepting case/separator variants (`page-title` vs `pageTitle`), which is
   how single-file-component templates often refer to script bindings.

The fallback is intentionally approximate. It does not follow bindings
across files and it does not try to be exhaustive.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from tree_sitter import Node

from dictlens.config import ACCESSOR_NAMES
from dictlens.services.parse_context import (
    ParsedSource,
    iter_descendants,
    literal_string_value,
    node_text,
    unwrap_expression,
)

logger = logging.getLogger(__name__)

_FUNCTION_TYPES = {
    "function_declaration",
    "function_expression",
    "arrow_function",
    "method_definition",
    "generator_function",
    "generator_function_declaration",
}

_SCOPE_TYPES = {"program", "statement_block", "class_body", "switch_body"}

_DECLARATION_TYPES = {"lexical_declaration", "variable_declaration"}


@dataclass
class AccessorCall:
    accessor_name: str
    dictionary_key: str
    node: Node


@dataclass
class BindingSite:
    kind: str  # "variable" | "import" | "parameter" | "function"
    name_node: Node
    declarator: Optional[Node] = None
    # Property path from the declarator's value to the binding; None when a
    # computed key sits on the way (`{ [k]: x }`).
    pattern_path: Optional[List[str]] = field(default_factory=list)


@dataclass
class DeclarationTrace:
    dictionary_key: str
    initial_path: List[str]
    accessor_function_name: str
    declarator: Optional[Node] = None


def accessor_call_info(call: Node | None, single_argument: bool = False) -> Optional[AccessorCall]:
    """
    Recognize `useIntlayer('key')` / `getIntlayer('key', locale)`.

    The callee must be a bare accessor identifier and the first argument a
    string or substitution-free template literal. Extra arguments (a locale)
    are allowed unless `single_argument` is set; a non-literal key never matches.
    """
    if call is None or call.type != "call_expression":
        return None
    callee = call.child_by_field_name("function")
    if callee is None or callee.type != "identifier":
        return None
    name = node_text(callee)
    if name not in ACCESSOR_NAMES:
        return None
    arguments = call.child_by_field_name("arguments")
    if arguments is None or arguments.type != "arguments":
        return None
    args = [a for a in arguments.named_children if a.type != "comment"]
    if not args or (single_argument and len(args) != 1):
        return None
    key = literal_string_value(args[0])
    if key is None:
        return None
    return AccessorCall(accessor_name=name, dictionary_key=key, node=call)


def normalize_binding_name(name: str) -> str:
    return re.sub(r"[-_]", "", name).lower()


def property_key(key_node: Node | None) -> Optional[str]:
    if key_node is None:
        return None
    if key_node.type in {"property_identifier", "identifier", "number"}:
        return node_text(key_node)
    return literal_string_value(key_node)


def find_binding_in_pattern(
    pattern: Node | None,
    matches,
) -> Optional[Tuple[Node, Optional[List[str]]]]:
    """
    Find the node in a binding pattern whose local name satisfies `matches`.

    Returns the binding node and the property path leading to it, e.g.
    `{ a: { b: local } }` yields `["a", "b"]` for `local`.
    """
    if pattern is None:
        return None
    kind = pattern.type

    if kind == "identifier":
        return (pattern, []) if matches(node_text(pattern)) else None

    if kind == "object_pattern":
        for element in pattern.named_children:
            if element.type == "shorthand_property_identifier_pattern":
                if matches(node_text(element)):
                    return element, [node_text(element)]
            elif element.type == "object_assignment_pattern":
                left = element.child_by_field_name("left")
                if left is not None and left.type == "shorthand_property_identifier_pattern":
                    if matches(node_text(left)):
                        return left, [node_text(left)]
                else:
                    found = find_binding_in_pattern(left, matches)
                    if found:
                        return found
            elif element.type == "pair_pattern":
                found = find_binding_in_pattern(element.child_by_field_name("value"), matches)
                if found:
                    binding, sub_path = found
                    key = property_key(element.child_by_field_name("key"))
                    if key is None or sub_path is None:
                        return binding, None
                    return binding, [key] + sub_path
            elif element.type == "rest_pattern":
                found = find_binding_in_pattern(
                    element.named_children[0] if element.named_children else None, matches
                )
                if found:
                    return found
        return None

    if kind == "assignment_pattern":
        return find_binding_in_pattern(pattern.child_by_field_name("left"), matches)

    if kind == "array_pattern":
        for element in pattern.named_children:
            found = find_binding_in_pattern(element, matches)
            if found:
                # Positional bindings have no content field path.
                return found[0], None
        return None

    return None


def _declarators(statement: Node) -> Iterator[Node]:
    if statement.type in _DECLARATION_TYPES:
        for child in statement.named_children:
            if child.type == "variable_declarator":
                yield child
    elif statement.type == "export_statement":
        declaration = statement.child_by_field_name("declaration")
        if declaration is not None:
            yield from _declarators(declaration)


def _import_bindings(statement: Node) -> Iterator[Node]:
    """Local names introduced by an import statement."""
    for clause in statement.named_children:
        if clause.type != "import_clause":
            continue
        for child in clause.named_children:
            if child.type == "identifier":
                yield child
            elif child.type == "namespace_import":
                for ident in child.named_children:
                    if ident.type == "identifier":
                        yield ident
            elif child.type == "named_imports":
                for spec in child.named_children:
                    if spec.type != "import_specifier":
                        continue
                    local = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                    if local is not None:
                        yield local


def _bindings_in_scope(scope: Node, matches) -> Optional[BindingSite]:
    for statement in scope.named_children:
        for declarator in _declarators(statement):
            found = find_binding_in_pattern(declarator.child_by_field_name("name"), matches)
            if found:
                return BindingSite("variable", found[0], declarator, found[1])
        if statement.type == "import_statement":
            for local in _import_bindings(statement):
                if matches(node_text(local)):
                    return BindingSite("import", local)
        if statement.type in {"function_declaration", "generator_function_declaration", "class_declaration"}:
            name_node = statement.child_by_field_name("name")
            if name_node is not None and matches(node_text(name_node)):
                return BindingSite("function", name_node)
    return None


def _parameter_binding(function: Node, matches) -> Optional[BindingSite]:
    single = function.child_by_field_name("parameter")
    if single is not None:
        if single.type == "identifier" and matches(node_text(single)):
            return BindingSite("parameter", single)
        return None
    params = function.child_by_field_name("parameters")
    if params is None:
        return None
    for param in params.named_children:
        target = param.child_by_field_name("pattern") or param
        found = find_binding_in_pattern(target, matches)
        if found:
            return BindingSite("parameter", found[0])
    return None


def _enclosing_declarator(node: Node) -> Optional[Node]:
    """The declarator whose name pattern contains `node`, if any."""
    current = node
    while current.parent is not None:
        parent = current.parent
        if parent.type == "variable_declarator":
            return parent if parent.child_by_field_name("name") == current else None
        if parent.type not in {
            "object_pattern",
            "pair_pattern",
            "object_assignment_pattern",
            "assignment_pattern",
            "rest_pattern",
            "array_pattern",
        }:
            return None
        current = parent
    return None


def lexical_binding(identifier: Node) -> Optional[BindingSite]:
    """Tier 1: nearest enclosing declaration of the identifier's name."""
    name = node_text(identifier)

    def same_name(candidate: str) -> bool:
        return candidate == name

    declarator = _enclosing_declarator(identifier)
    if declarator is not None:
        found = find_binding_in_pattern(declarator.child_by_field_name("name"), same_name)
        if found and found[0] == identifier:
            return BindingSite("variable", identifier, declarator, found[1])

    current = identifier.parent
    while current is not None:
        if current.type in _FUNCTION_TYPES:
            site = _parameter_binding(current, same_name)
            if site:
                return site
        if current.type in _SCOPE_TYPES:
            site = _bindings_in_scope(current, same_name)
            if site:
                return site
        current = current.parent
    return None


def structural_binding(parsed: ParsedSource, name: str) -> Optional[BindingSite]:
    """Tier 2: any declarator or import in the file binding `name` or a variant of it."""
    wanted = normalize_binding_name(name)

    def loose_match(candidate: str) -> bool:
        return candidate == name or normalize_binding_name(candidate) == wanted

    for node in iter_descendants(parsed.root, {"variable_declarator", "import_statement"}):
        if node.type == "variable_declarator":
            found = find_binding_in_pattern(node.child_by_field_name("name"), loose_match)
            if found:
                return BindingSite("variable", found[0], node, found[1])
        else:
            for local in _import_bindings(node):
                if loose_match(node_text(local)):
                    return BindingSite("import", local)
    return None


def trace_binding(site: BindingSite) -> Optional[DeclarationTrace]:
    if site.kind != "variable" or site.declarator is None or site.pattern_path is None:
        return None
    info = accessor_call_info(
        unwrap_expression(site.declarator.child_by_field_name("value")), single_argument=True
    )
    if info is None:
        return None
    return DeclarationTrace(
        dictionary_key=info.dictionary_key,
        initial_path=list(site.pattern_path),
        accessor_function_name=info.accessor_name,
        declarator=site.declarator,
    )


def trace_declaration(parsed: ParsedSource, root_identifier: Node) -> Optional[DeclarationTrace]:
    """
    Resolve the dictionary behind `root_identifier`.

    Returns None unless the identifier is bound, directly or through
    destructuring, to an accessor call with a literal key. For a
    destructured binding the source property name (never the local alias)
    becomes the first path segment.
    """
    site = lexical_binding(root_identifier)
    if site is None:
        site = structural_binding(parsed, node_text(root_identifier))
    if site is None:
        logger.debug("No binding for %s in %s", node_text(root_identifier), parsed.virtual_path)
        return None
    return trace_binding(site)


def find_import_source(parsed: ParsedSource, function_name: str) -> Optional[str]:
    """Module specifier the accessor was imported from, e.g. "next-intlayer/server"."""
    for statement in iter_descendants(parsed.root, {"import_statement"}):
        source = literal_string_value(statement.child_by_field_name("source"))
        if source is None:
            continue
        for clause in statement.named_children:
            if clause.type != "import_clause":
                continue
            for child in clause.named_children:
                if child.type == "identifier" and node_text(child) == function_name:
                    return source
                if child.type != "named_imports":
                    continue
                for spec in child.named_children:
                    if spec.type != "import_specifier":
                        continue
                    names = {
                        node_text(spec.child_by_field_name("name")),
                        node_text(spec.child_by_field_name("alias")),
                    }
                    if function_name in names:
                        return source
    return None
