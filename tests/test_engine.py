from pathlib import Path

import anyio
import pytest

from dictlens.errors import WorkspaceUnavailableError
from dictlens.models import Position
from dictlens.services import engine as ops
from dictlens.services.engine import EngineContext


def _page(project: Path):
    path = project / "src" / "page.tsx"
    return str(path), path.read_text(encoding="utf-8")


def _position(text: str, line: int, word: str) -> Position:
    return Position(line=line, character=text.split("\n")[line].index(word))


def test_resolve_origin_destructured_field(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    file_path, text = _page(intlayer_project)

    origin = ops.resolve_origin(engine, file_path, text, _position(text, 4, "home"))

    assert origin is not None
    assert origin.dictionary_key == "app"
    assert origin.field_path == ["nav", "home"]
    assert origin.module_source == "react-intlayer"


def test_resolve_origin_same_field_under_different_local_names(tmp_path: Path) -> None:
    engine = EngineContext.for_workspace(tmp_path)
    aliased = 'const { title: pageTitle } = useIntlayer("k");\nconsole.log(pageTitle);\n'
    plain = 'const { title } = useIntlayer("k");\nconsole.log(title);\n'

    first = ops.resolve_origin(engine, "/w/a.tsx", aliased, _position(aliased, 1, "pageTitle"))
    second = ops.resolve_origin(engine, "/w/b.tsx", plain, _position(plain, 1, "title"))

    assert first.dictionary_key == second.dictionary_key == "k"
    assert first.field_path == second.field_path == ["title"]


def test_resolve_origin_outside_dictionary_access(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    file_path, text = _page(intlayer_project)

    assert ops.resolve_origin(engine, file_path, text, _position(text, 2, "Page")) is None
    assert ops.resolve_origin(engine, file_path, text, _position(text, 3, "app")) is None


@pytest.mark.anyio
async def test_hover_reports_type_and_translations(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    file_path, text = _page(intlayer_project)

    info = await ops.hover(engine, file_path, text, _position(text, 4, "title"))

    assert info.dictionary_key == "app"
    assert info.path == "title"
    assert info.type == "IntlayerNode"
    assert len(info.entries) == 1
    entry = info.entries[0]
    assert entry.kind == "translation"
    assert entry.translations == {"en": "Hello", "fr": "Bonjour"}
    assert entry.file_path == str(engine.workspace_root / "src" / "app.content.ts")


@pytest.mark.anyio
async def test_hover_on_value_accessor_shows_primitive_type(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    file_path, text = _page(intlayer_project)

    info = await ops.hover(engine, file_path, text, _position(text, 4, "value"))

    assert info.path == "title"
    assert info.type == "string"


@pytest.mark.anyio
async def test_hover_remote_record_links_dashboard(intlayer_project: Path) -> None:
    dictionary = intlayer_project / ".intlayer" / "unmerged_dictionary" / "app.json"
    dictionary.write_text('[{"key": "app", "content": {}, "location": "remote"}]')
    engine = EngineContext.for_workspace(intlayer_project)
    file_path, text = _page(intlayer_project)

    info = await ops.hover(engine, file_path, text, _position(text, 4, "title"))

    assert info.type == "unknown"
    assert info.entries[0].kind == "remote"
    assert info.entries[0].dashboard_url == "https://intlayer.org/dictionary/app"


@pytest.mark.anyio
async def test_definitions_point_at_declared_field(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    file_path, text = _page(intlayer_project)

    targets = await ops.definitions(engine, file_path, text, _position(text, 4, "home"))

    assert len(targets) == 1
    assert targets[0].file_path.endswith("app.content.ts")
    assert targets[0].exact
    assert targets[0].range.start == Position(line=7, character=6)


@pytest.mark.anyio
async def test_definitions_fall_back_to_file_start(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    text = 'const content = useIntlayer("app");\ncontent.unknownField;\n'
    file_path = str(intlayer_project / "src" / "other.tsx")

    targets = await ops.definitions(engine, file_path, text, _position(text, 1, "unknownField"))

    assert len(targets) == 1
    assert not targets[0].exact
    assert targets[0].range.start == Position(line=0, character=0)


@pytest.mark.anyio
async def test_unused_keys_reports_only_unread_fields(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    content_file = intlayer_project / "src" / "app.content.ts"
    text = content_file.read_text(encoding="utf-8")

    report = await ops.unused_keys(engine, str(content_file), text)

    assert report.dictionary_used
    assert [u.key for u in report.unused] == ["count"]
    assert report.unused[0].range.start == Position(line=9, character=4)


@pytest.mark.anyio
async def test_unused_dictionary_is_reported_as_a_whole(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    content_file = intlayer_project / "src" / "orphan.content.ts"
    text = 'export default {\n  key: "orphan",\n  content: { a: "x" },\n};\n'
    content_file.write_text(text)

    report = await ops.unused_keys(engine, str(content_file), text)

    assert not report.dictionary_used
    assert [u.key for u in report.unused] == ["orphan"]
    assert report.unused[0].range.start == Position(line=1, character=2)


@pytest.mark.anyio
async def test_wildcard_usage_suppresses_field_reports(intlayer_project: Path) -> None:
    (intlayer_project / "src" / "dump.tsx").write_text(
        'const content = useIntlayer("app");\nconsole.log(content);\n'
    )
    engine = EngineContext.for_workspace(intlayer_project)
    content_file = intlayer_project / "src" / "app.content.ts"

    report = await ops.unused_keys(engine, str(content_file), content_file.read_text())

    assert report.unused == []


@pytest.mark.anyio
async def test_unused_keys_in_json_content_file(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    content_file = intlayer_project / "src" / "app.content.json"
    text = '{\n  "key": "app",\n  "content": {\n    "title": "x",\n    "extra": "y"\n  }\n}\n'
    content_file.write_text(text)

    report = await ops.unused_keys(engine, str(content_file), text)

    assert [u.key for u in report.unused] == ["extra"]
    assert report.unused[0].range.start == Position(line=4, character=4)


@pytest.mark.anyio
async def test_content_definitions_jump_to_usages(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    content_file = intlayer_project / "src" / "app.content.ts"
    text = content_file.read_text(encoding="utf-8")

    field_links = await ops.content_definitions(engine, str(content_file), text, _position(text, 7, "home"))
    key_links = await ops.content_definitions(engine, str(content_file), text, _position(text, 3, "app"))

    assert len(field_links) == 1
    assert field_links[0].file_path.endswith("page.tsx")
    assert field_links[0].range.start.line == 4
    assert len(key_links) == 1
    assert key_links[0].range.start == Position(line=3, character=25)


@pytest.mark.anyio
async def test_content_usage_scan_is_cached(intlayer_project: Path, monkeypatch) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    content_file = intlayer_project / "src" / "app.content.ts"
    text = content_file.read_text(encoding="utf-8")
    calls = []
    original = ops.find_usages

    async def counting(*args, **kwargs):
        calls.append(args)
        return await original(*args, **kwargs)

    monkeypatch.setattr(ops, "find_usages", counting)

    await ops.content_definitions(engine, str(content_file), text, _position(text, 7, "home"))
    await ops.content_definitions(engine, str(content_file), text, _position(text, 5, "title"))

    assert len(calls) == 1


@pytest.mark.anyio
async def test_decorations_show_localized_values(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    file_path, text = _page(intlayer_project)

    decorations = await ops.decorations(engine, file_path, text)

    assert [(d.line, d.text) for d in decorations] == [(4, "Hello")]


@pytest.mark.anyio
async def test_decorations_use_default_locale(intlayer_project: Path) -> None:
    (intlayer_project / "intlayer.config.json").write_text('{"internationalization": {"defaultLocale": "fr"}}')
    engine = EngineContext.for_workspace(intlayer_project)
    text = 'const content = getIntlayer("app");\nconst a = content.title;\nconst b = content.nav;\n'

    decorations = await ops.decorations(engine, str(intlayer_project / "src" / "x.ts"), text)

    # `content.nav` is a group, not a displayable value.
    assert [(d.line, d.text) for d in decorations] == [(1, "Bonjour")]


@pytest.mark.anyio
async def test_redirect_key_to_built_dictionary(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    file_path, text = _page(intlayer_project)

    link = await ops.redirect_key_to_dictionary(engine, file_path, text, _position(text, 3, "app"))

    assert link is not None
    assert link.file_path == str(engine.workspace_root / "src" / "app.content.ts")
    assert await ops.redirect_key_to_dictionary(engine, file_path, text, _position(text, 0, "react")) is None


@pytest.mark.anyio
async def test_operations_without_workspace_raise(tmp_path: Path) -> None:
    engine = EngineContext.for_workspace(None)
    text = 'const content = useIntlayer("app");\ncontent.title;\n'

    with pytest.raises(WorkspaceUnavailableError):
        await ops.hover(engine, str(tmp_path / "a.tsx"), text, _position(text, 1, "title"))

    with pytest.raises(WorkspaceUnavailableError):
        await ops.dictionary_usages(engine, "app")


@pytest.mark.anyio
async def test_burst_of_decoration_requests_answers_only_the_last(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    engine.decoration_debounce_delay = 0.05
    file_path, text = _page(intlayer_project)
    results = {}

    async def trigger(name: str) -> None:
        results[name] = await ops.debounced_decorations(engine, file_path, text)

    async with anyio.create_task_group() as tg:
        tg.start_soon(trigger, "first")
        await anyio.sleep(0.01)
        tg.start_soon(trigger, "second")

    assert results["first"] is None
    assert [(d.line, d.text) for d in results["second"]] == [(4, "Hello")]
    assert engine.debouncers == {}


@pytest.mark.anyio
async def test_unused_keys_requests_are_debounced_per_document(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    engine.unused_debounce_delay = 0.05
    content_file = intlayer_project / "src" / "app.content.ts"
    text = content_file.read_text(encoding="utf-8")
    results = []

    async def trigger() -> None:
        results.append(await ops.debounced_unused_keys(engine, str(content_file), text))

    async with anyio.create_task_group() as tg:
        tg.start_soon(trigger)
        tg.start_soon(trigger)
        tg.start_soon(trigger)

    assert results.count(None) == 2
    report = next(r for r in results if r is not None)
    assert [u.key for u in report.unused] == ["count"]


def test_resolve_origin_past_line_end_is_none(intlayer_project: Path) -> None:
    engine = EngineContext.for_workspace(intlayer_project)
    text = 'const c = useIntlayer("k");\nfoo();\nc.title;\n'

    origin = ops.resolve_origin(engine, str(intlayer_project / "src" / "x.tsx"), text, Position(line=1, character=40))

    assert origin is None


@pytest.mark.anyio
async def test_project_roots_and_workspace_root_requirement(intlayer_project: Path) -> None:
    assert await ops.project_roots(EngineContext.for_workspace(intlayer_project)) == [
        str(intlayer_project.resolve())
    ]
    with pytest.raises(WorkspaceUnavailableError):
        ops.resolve_project(EngineContext.for_workspace(None), None)
