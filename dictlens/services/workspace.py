import os
import re
from pathlib import Path
from typing import List, Optional, Protocol

import anyio
from pathspec import PathSpec

from dictlens.config import IGNORE_DIRS
from dictlens.errors import WorkspaceUnavailableError

_BRACE_RE = re.compile(r"\{([^{}]*)\}")


class WorkspaceSearch(Protocol):
    """The only filesystem primitives the engine needs from its host."""

    async def find_files(self, base: Path, include: str, exclude: Optional[str] = None) -> List[Path]:
        ...

    async def read_text(self, path: Path) -> str:
        ...

    def require_root(self) -> Path:
        """The workspace root; raises WorkspaceUnavailableError when there is none."""
        ...


def find_repo_root(start_path: Path) -> Path:
    current = start_path.resolve()
    for parent in [current, *current.parents]:
        if (parent / ".git").exists(): return parent
    return current


def expand_braces(pattern: str) -> List[str]:
    """
    Expand `{a,b}` alternatives, which gitwildmatch does not understand.

    `**/*.{ts,tsx}` -> [`**/*.ts`, `**/*.tsx`]
    """
    match = _BRACE_RE.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end():]
    expanded: List[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


def compile_glob(pattern: Optional[str]) -> Optional[PathSpec]:
    if not pattern:
        return None
    return PathSpec.from_lines("gitwildmatch", expand_braces(pattern))


def _translate_gitignore_pattern(raw_line: str, base_rel: str) -> str | None:
    """
    Translate a single .gitignore pattern that lives in a directory `base_rel`
    (relative to the repo root) into a repo-root-relative gitwildmatch pattern.

    This approximates Git's semantics including:
    - patterns starting with '!' (negation)
    - patterns starting with '/' (anchored to the .gitignore directory)
    - patterns without '/' applying within the directory subtree
    """
    line = raw_line.rstrip("\n")
    if not line or line.lstrip().startswith("#"):
        return None

    negated = line.startswith("!")
    body = line[1:] if negated else line

    if body.startswith("/"):
        body = body[1:]

    prefix = f"{base_rel}/" if base_rel else ""

    if "/" in body.rstrip("/"):
        pat = prefix + body
    else:
        if base_rel:
            pat = f"{base_rel}/**/{body}"
        else:
            pat = f"**/{body}"

    return f"!{pat}" if negated else pat


def _load_gitignore_spec(root_path: Path) -> tuple[Path, PathSpec | None]:
    """
    Collect every .gitignore visible from `root_path` into one PathSpec
    anchored at the enclosing repository root, so searching a sub-project
    still honors repo-level and nested ignore files.
    """
    repo_root = find_repo_root(root_path)

    all_patterns: list[str] = []

    for dirpath, dirnames, filenames in os.walk(repo_root):
        dirnames[:] = [d for d in dirnames if d not in IGNORE_DIRS]

        if ".gitignore" not in filenames:
            continue

        gitignore_file = Path(dirpath) / ".gitignore"
        base_rel = (
            str(Path(dirpath).relative_to(repo_root).as_posix())
            if Path(dirpath) != repo_root
            else ""
        )

        try:
            with open(gitignore_file, "r", encoding="utf-8", errors="ignore") as f:
                for raw in f:
                    translated = _translate_gitignore_pattern(raw, base_rel)
                    if translated is not None:
                        all_patterns.append(translated)
        except OSError:
            continue

    if not all_patterns:
        return repo_root, None

    return repo_root, PathSpec.from_lines("gitwildmatch", all_patterns)


def _is_gitignored(path: Path, ignore_root: Path, spec: PathSpec | None) -> bool:
    if spec is None:
        return False
    try:
        rel = path.relative_to(ignore_root)
    except ValueError:
        rel = path
    rel_str = rel.as_posix()
    if path.is_dir():
        rel_str += "/"
    return spec.match_file(rel_str)


class FileSystemWorkspace:
    """
    Workspace search backed by the local filesystem.

    Dependency and build directories are pruned, `.gitignore` rules are
    honored, and reads go through anyio so a scan yields to the event loop
    between files.
    """

    def __init__(self, root: Optional[Path] = None, respect_gitignore: bool = True):
        self.root = Path(root).resolve() if root is not None else None
        self.respect_gitignore = respect_gitignore

    def require_root(self) -> Path:
        if self.root is None or not self.root.is_dir():
            raise WorkspaceUnavailableError(str(self.root) if self.root else None)
        return self.root

    def _walk(self, base: Path, include: str, exclude: Optional[str]) -> List[Path]:
        include_spec = compile_glob(include)
        exclude_spec = compile_glob(exclude)
        ignore_root, gitignore_spec = (
            _load_gitignore_spec(base) if self.respect_gitignore else (base, None)
        )

        matches: List[Path] = []
        for root_dir, dirs, files in os.walk(base):
            root_dir_path = Path(root_dir)

            pruned_dirs: list[str] = []
            for d in dirs:
                if d in IGNORE_DIRS:
                    continue
                if _is_gitignored(root_dir_path / d, ignore_root, gitignore_spec):
                    continue
                pruned_dirs.append(d)
            dirs[:] = sorted(pruned_dirs)

            for file in sorted(files):
                file_path = root_dir_path / file
                rel = file_path.relative_to(base).as_posix()
                if include_spec is not None and not include_spec.match_file(rel):
                    continue
                if exclude_spec is not None and exclude_spec.match_file(rel):
                    continue
                if _is_gitignored(file_path, ignore_root, gitignore_spec):
                    continue
                matches.append(file_path)
        return matches

    async def find_files(self, base: Path, include: str, exclude: Optional[str] = None) -> List[Path]:
        base = Path(base)
        if not base.is_dir():
            raise WorkspaceUnavailableError(str(base))
        return await anyio.to_thread.run_sync(self._walk, base, include, exclude)

    async def read_text(self, path: Path) -> str:
        return await anyio.Path(path).read_text(encoding="utf-8")
