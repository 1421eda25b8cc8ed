from dictlens.services.content import (
    ContentKind,
    content_keys,
    describe_type,
    display_text,
    localize,
    parse_content,
    to_json,
    traverse,
    value_at,
)

CONTENT = {
    "title": {"nodeType": "translation", "translation": {"en": "Hello", "fr": "Bonjour"}},
    "body": {
        "nodeType": "markdown",
        "markdown": {"nodeType": "translation", "translation": {"en": "# Doc", "fr": "# Doc FR"}},
    },
    "nav": {"home": "Home", "links": ["a", "b"]},
    "count": 3,
}


def test_parse_content_kinds() -> None:
    root = parse_content(CONTENT)

    assert root.kind is ContentKind.OBJECT
    assert root.fields["title"].kind is ContentKind.TRANSLATION
    assert root.fields["body"].kind is ContentKind.MARKDOWN
    assert root.fields["count"].kind is ContentKind.PRIMITIVE
    # Arrays are addressed by index like objects.
    assert traverse(root, ["nav", "links", "1"]).value == "b"


def test_traverse_skips_framework_accessors_and_fails_strictly() -> None:
    root = parse_content(CONTENT)

    assert traverse(root, ["nav", "use", "home", "value"]).value == "Home"
    assert traverse(root, ["nav", "missing"]) is None
    assert traverse(root, ["count", "deeper"]) is None


def test_localize_fallbacks() -> None:
    node = parse_content({"nodeType": "translation", "translation": {"de": "Hallo", "en": "Hello"}})
    assert localize(node, "de").value == "Hallo"
    assert localize(node, "fr").value == "Hello"

    only_de = parse_content({"nodeType": "translation", "translation": {"de": "Hallo"}})
    assert localize(only_de, "fr").value == "Hallo"


def test_value_at_unwraps_wrappers() -> None:
    root = parse_content(CONTENT)

    assert value_at(root, ["body"], "fr") == "# Doc FR"
    assert value_at(root, ["title", "value"], "en") == "Hello"
    assert value_at(root, ["nope"], "en") is None


def test_describe_type() -> None:
    root = parse_content(CONTENT)
    title = root.fields["title"]

    assert describe_type(title, "react-intlayer", accessor_used=False) == "IntlayerNode"
    assert describe_type(title, "react-intlayer", accessor_used=True) == "string"
    assert describe_type(title, "intlayer", accessor_used=False) == "string"
    assert describe_type(root.fields["nav"], None, False) == "Object"
    assert describe_type(root.fields["count"], None, False) == "number"


def test_display_text() -> None:
    assert display_text("  spaced\n  out  ") == "spaced out"
    assert display_text(42) == "42"
    assert display_text("x" * 70) == "x" * 60 + "..."
    assert display_text({"type": "p", "key": None, "props": {"children": ["Hi ", {"props": {"children": "there"}}]}}) == "Hi there"
    assert display_text({"group": {"a": 1}}) is None
    assert display_text("") is None


def test_content_keys_include_groups() -> None:
    root = parse_content({"title": "t", "nav": {"home": "h", "sub": {"deep": "d"}}})

    assert content_keys(root.fields) == ["title", "nav", "nav.home", "nav.sub", "nav.sub.deep"]


def test_to_json_round_trips_raw_objects() -> None:
    assert to_json(parse_content(CONTENT)) == CONTENT
