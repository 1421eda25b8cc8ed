import json
from pathlib import Path

import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


APP_DICTIONARY = [
    {
        "key": "app",
        "content": {
            "title": {"nodeType": "translation", "translation": {"en": "Hello", "fr": "Bonjour"}},
            "nav": {"home": {"nodeType": "translation", "translation": {"en": "Home"}}},
            "count": 3,
        },
        "filePath": "src/app.content.ts",
        "location": "local",
    }
]

APP_CONTENT_FILE = """import { t, type Dictionary } from "intlayer";

const appContent = {
  key: "app",
  content: {
    title: t({ en: "Hello", fr: "Bonjour" }),
    nav: {
      home: t({ en: "Home" }),
    },
    count: 3,
  },
} satisfies Dictionary;

export default appContent;
"""

PAGE_FILE = """import { useIntlayer } from "react-intlayer";

export const Page = () => {
  const { title, nav } = useIntlayer("app");
  return <h1>{title.value}{nav.home}</h1>;
};
"""


@pytest.fixture
def intlayer_project(tmp_path: Path) -> Path:
    """A small project: one dictionary, its content file and one component using it."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "package.json").write_text(
        json.dumps({"name": "demo", "dependencies": {"intlayer": "^5.0.0"}}),
        encoding="utf-8",
    )

    unmerged = root / ".intlayer" / "unmerged_dictionary"
    unmerged.mkdir(parents=True)
    (unmerged / "app.json").write_text(json.dumps(APP_DICTIONARY), encoding="utf-8")

    built = root / ".intlayer" / "dictionary"
    built.mkdir(parents=True)
    (built / "app.json").write_text(
        json.dumps({"key": "app", "filePath": "src/app.content.ts"}),
        encoding="utf-8",
    )

    (root / "src" / "app.content.ts").write_text(APP_CONTENT_FILE, encoding="utf-8")
    (root / "src" / "page.tsx").write_text(PAGE_FILE, encoding="utf-8")
    return root
