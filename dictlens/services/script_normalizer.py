"""
Turn single-file-component sources (.vue, .svelte) into text the TSX grammar
can parse, without moving any character.

Every rewrite below replaces a match with a string of exactly the same
length, so an offset (or line/column) computed on the normalized text points
at the same character in the original. Everything downstream relies on that.
"""

import re

from dictlens.config import MARKUP_EXTENSIONS

_SCRIPT_TAG_RE = re.compile(r"(<script\b[^>]*>)|(</script\s*>)", re.IGNORECASE)
_BLOCK_TAG_RE = re.compile(r"</?(?:template|style)\b[^>]*>", re.IGNORECASE)

# Vue `<template>` blocks become fragments, so sibling root elements stay one expression.
_TEMPLATE_TAG_RE = re.compile(r"<(/?)template\b[^>]*>", re.IGNORECASE)

# Vue interpolation: `{{ expr }}` -> ` { expr } `
_VUE_OPEN_RE = re.compile(r"\{\{")
_VUE_CLOSE_RE = re.compile(r"\}\}")

# Svelte block directives: `{#if`, `{:else`, `{/each`, `{@html` ...
_SVELTE_DIRECTIVE_RE = re.compile(r"\{[#/:@][a-z0-9]*", re.IGNORECASE)


def _blank(match: re.Match) -> str:
    return " " * len(match.group(0))


def _fragment(match: re.Match) -> str:
    tag = match.group(0)
    if tag.endswith("/>"):
        return _blank(match)
    replacement = "</>" if match.group(1) else "<>"
    return replacement + " " * (len(tag) - len(replacement))


def is_markup_dialect(extension: str) -> bool:
    return extension.lower() in MARKUP_EXTENSIONS


def normalize(source_text: str, extension: str) -> str:
    """
    Return `source_text` rewritten so it parses as TSX.

    Plain script dialects are returned unchanged. The result always has the
    same length as the input.
    """
    ext = extension.lower()
    if ext not in MARKUP_EXTENSIONS:
        return source_text

    text = _SCRIPT_TAG_RE.sub(_blank, source_text)
    if ext == ".vue":
        text = _TEMPLATE_TAG_RE.sub(_fragment, text)
        text = _VUE_OPEN_RE.sub(" {", text)
        text = _VUE_CLOSE_RE.sub("} ", text)
    elif ext == ".svelte":
        text = _SVELTE_DIRECTIVE_RE.sub(_blank, text)
    text = _BLOCK_TAG_RE.sub(_blank, text)

    return text
