from dictlens.services.parse_context import LineIndex
from dictlens.services.script_normalizer import is_markup_dialect, normalize


VUE_SOURCE = """<template>
  <h1>{{ content.title }}</h1>
</template>

<script setup lang="ts">
import { useIntlayer } from "vue-intlayer";
const content = useIntlayer("app");
</script>
"""

SVELTE_SOURCE = """<script>
  const content = getIntlayer("app");
</script>

{#if content}
  <p>{content.title}</p>
{:else}
  {@html content.body}
{/if}
"""


def _positions(text: str):
    index = LineIndex(text.encode("utf-8"))
    return [index.position_at(len(text[:i].encode("utf-8"))) for i in range(len(text))]


def test_plain_script_is_unchanged() -> None:
    source = 'const content = useIntlayer("app");\n'
    assert normalize(source, ".tsx") == source
    assert normalize(source, ".js") == source


def test_vue_normalization_preserves_offsets() -> None:
    normalized = normalize(VUE_SOURCE, ".vue")

    assert len(normalized) == len(VUE_SOURCE)
    assert normalized.count("\n") == VUE_SOURCE.count("\n")
    assert "{{" not in normalized and "}}" not in normalized
    assert "<script" not in normalized and "<template" not in normalized
    assert "{ content.title }" in normalized
    # Every character maps to the same line/column as before.
    assert _positions(normalized) == _positions(VUE_SOURCE)


def test_svelte_directives_are_blanked() -> None:
    normalized = normalize(SVELTE_SOURCE, ".svelte")

    assert len(normalized) == len(SVELTE_SOURCE)
    for directive in ("{#if", "{:else", "{@html", "{/if"):
        assert directive not in normalized
    assert "{content.title}" in normalized
    assert "{#if content}" not in normalized and "     content}" in normalized
    assert _positions(normalized) == _positions(SVELTE_SOURCE)


def test_markup_dialect_detection_ignores_case() -> None:
    assert is_markup_dialect(".vue")
    assert is_markup_dialect(".SVELTE")
    assert not is_markup_dialect(".tsx")


def test_vue_template_becomes_one_fragment() -> None:
    source = '<template lang="html">\n  <h1>{{ a }}</h1>\n  <p>{{ b }}</p>\n</template>\n'
    normalized = normalize(source, ".vue")

    assert len(normalized) == len(source)
    assert normalized.startswith("<>" + " " * (len('<template lang="html">') - 2))
    assert "</>" + " " * 8 + "\n" in normalized
    assert normalize("<template />", ".vue") == " " * len("<template />")
