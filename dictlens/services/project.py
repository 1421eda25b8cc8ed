import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import anyio

from dictlens.config import (
    DEFAULT_CMS_URL,
    DEFAULT_DICTIONARIES_DIR,
    DEFAULT_LOCALE,
    DEFAULT_UNMERGED_DICTIONARIES_DIR,
    PACKAGE_JSON_DEPENDENCY_FIELDS,
    PROJECT_CONFIG_FILE_NAME,
    PROJECT_MARKER_PACKAGE,
)
from dictlens.models import ProjectConfig
from dictlens.services.workspace import WorkspaceSearch

logger = logging.getLogger(__name__)


async def _read_json(path: Path) -> Optional[Any]:
    try:
        return json.loads(await anyio.Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None


def declares_marker_dependency(package_json: Any) -> bool:
    if not isinstance(package_json, dict):
        return False
    for field_name in PACKAGE_JSON_DEPENDENCY_FIELDS:
        deps = package_json.get(field_name)
        if isinstance(deps, dict) and deps.get(PROJECT_MARKER_PACKAGE):
            return True
    return False


class ProjectRootFinder:
    """
    Walks up from a directory to the nearest package.json that depends on
    the dictionary framework.

    Results, including misses, are memoized per start directory and for every
    directory that turned out to be a root. The walk never climbs above the
    workspace root; when nothing is found the workspace root is the answer.
    """

    def __init__(self, workspace_root: Optional[Path] = None):
        self.workspace_root = Path(workspace_root).resolve() if workspace_root else None
        self._cache: Dict[str, Optional[str]] = {}

    async def __call__(self, start_dir: str | Path | None) -> Optional[str]:
        if start_dir is None:
            return None
        start = str(Path(start_dir).resolve())
        if start in self._cache:
            return self._cache[start]

        floor = len(str(self.workspace_root)) if self.workspace_root else 0
        current = Path(start)
        while current != current.parent and len(str(current)) >= floor:
            key = str(current)
            if key in self._cache:
                self._cache[start] = self._cache[key]
                return self._cache[key]

            if declares_marker_dependency(await _read_json(current / "package.json")):
                self._cache[start] = key
                self._cache[key] = key
                return key
            current = current.parent

        fallback = str(self.workspace_root) if self.workspace_root else None
        self._cache[start] = fallback
        return fallback

    def clear(self) -> None:
        self._cache.clear()


async def find_all_project_roots(workspace_root: Path, workspace: WorkspaceSearch) -> List[str]:
    """Every directory under `workspace_root` holding a package.json that depends on the framework."""
    roots: List[str] = []
    for package_json in await workspace.find_files(workspace_root, "**/package.json", "**/node_modules/**"):
        try:
            data = json.loads(await workspace.read_text(package_json))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            continue
        if declares_marker_dependency(data):
            roots.append(str(Path(package_json).parent))
    return roots


def _nested(data: Dict[str, Any], section: str, name: str) -> Optional[Any]:
    value = data.get(section)
    if isinstance(value, dict):
        return value.get(name)
    return None


async def load_project_config(project_dir: str | Path) -> ProjectConfig:
    """
    Configuration for a project, with defaults for everything the optional
    override file does not set. A broken override file is logged and ignored.
    """
    base_dir = Path(project_dir)
    values: Dict[str, Any] = {
        "base_dir": str(base_dir),
        "unmerged_dictionaries_dir": str(base_dir / DEFAULT_UNMERGED_DICTIONARIES_DIR),
        "dictionaries_dir": str(base_dir / DEFAULT_DICTIONARIES_DIR),
        "default_locale": DEFAULT_LOCALE,
        "cms_url": DEFAULT_CMS_URL,
    }

    override_path = base_dir / PROJECT_CONFIG_FILE_NAME
    if await anyio.Path(override_path).exists():
        data = await _read_json(override_path)
        if not isinstance(data, dict):
            logger.warning("Ignoring invalid project config %s", override_path)
        else:
            unmerged = _nested(data, "content", "unmergedDictionariesDir")
            if isinstance(unmerged, str):
                values["unmerged_dictionaries_dir"] = str(base_dir / unmerged)
            built = _nested(data, "content", "dictionariesDir")
            if isinstance(built, str):
                values["dictionaries_dir"] = str(base_dir / built)
            locale = _nested(data, "internationalization", "defaultLocale")
            if isinstance(locale, str) and locale:
                values["default_locale"] = locale
            cms_url = _nested(data, "editor", "cmsURL")
            if isinstance(cms_url, str) and cms_url:
                values["cms_url"] = cms_url.rstrip("/")

    return ProjectConfig(**values)
