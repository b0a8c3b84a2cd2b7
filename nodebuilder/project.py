"""
project.py

Responsibility: Detect a Node.js project and prepare its Docker build context.

Rules:
- A directory is a Node.js project iff it contains `package.json`.
- The build context is a copy of the project without `.git/` and without
  anything matched by `.gitignore`.

This module intentionally does NOT run docker or print anything.
"""

from __future__ import annotations

import fnmatch
import json
import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from nodebuilder.errors import NodeBuilderError

logger = logging.getLogger(__name__)

DOCKERIGNORE_HEADER = "*.git\n"

_VERSION_RE = re.compile(r"\d+(?:\.\d+){0,2}")


class ProjectError(NodeBuilderError):
    pass


@dataclass(frozen=True)
class Project:
    """A Node.js project rooted at `root`."""

    root: Path
    package: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        name = str(self.package.get("name") or "").strip()
        if not name:
            raise ProjectError('The name of the project should be in "package.json"')
        return name

    @property
    def image_name(self) -> str:
        """Project name as a Docker repository name (`@scope/app` -> `scope/app`)."""
        return self.name.lstrip("@").lower()

    def node_version(self, default: str) -> str:
        """
        Node.js version declared in `engines.node` (or the legacy `engine.node`).

        Range operators are dropped so the result can be used as an image tag:
        `">=14.17"` -> `"14.17"`. Unparseable values fall back to `default`.
        """
        for key in ("engines", "engine"):
            section = self.package.get(key)
            if isinstance(section, dict) and section.get("node"):
                match = _VERSION_RE.search(str(section["node"]))
                if match:
                    return match.group(0)
                logger.warning("Ignoring unparseable %s.node %r", key, section["node"])
        return default

    @property
    def gitignore_path(self) -> Path:
        return self.root / ".gitignore"


def find_project(cwd: str | Path) -> Project:
    root = Path(cwd).resolve()
    package_json = root / "package.json"
    if not package_json.is_file():
        logger.debug("No package.json found in %s", root)
        raise ProjectError("Current directory is not a Node.js project (no package.json found)")

    logger.debug("Found package.json in %s", root)
    try:
        package = json.loads(package_json.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ProjectError(f"Invalid package.json: {e}") from e
    if not isinstance(package, dict):
        raise ProjectError("package.json must contain a JSON object")
    return Project(root=root, package=package)


class GitIgnore:
    """
    Best-effort `.gitignore` matcher:
    - `#` comments, blank lines, `!` negation (last match wins)
    - trailing `/` matches directories only
    - patterns with a leading or inner `/` are anchored to the project root, others match any path segment
    - globs never cross `/`; a `**` segment matches any number of directories
    - a matched directory ignores everything below it
    """

    def __init__(self, patterns: list[str]) -> None:
        self._rules: list[tuple[list[str], bool, bool, bool]] = []
        for raw in patterns:
            line = raw.rstrip()
            if not line or line.startswith("#"):
                continue
            negate = line.startswith("!")
            if negate:
                line = line[1:]
            dir_only = line.endswith("/")
            line = line.rstrip("/")
            anchored = "/" in line
            segments = [s for s in line.split("/") if s]
            if segments:
                self._rules.append((segments, negate, dir_only, anchored))

    @classmethod
    def from_file(cls, path: str | Path) -> GitIgnore:
        p = Path(path)
        if not p.is_file():
            return cls([])
        return cls(p.read_text(encoding="utf-8").splitlines())

    @classmethod
    def _match_segments(cls, pattern: list[str], parts: list[str]) -> bool:
        if not pattern:
            return not parts
        if pattern[0] == "**":
            return any(cls._match_segments(pattern[1:], parts[i:]) for i in range(len(parts) + 1))
        return bool(parts) and fnmatch.fnmatchcase(parts[0], pattern[0]) and cls._match_segments(pattern[1:], parts[1:])

    def _rule_matches(self, parts: list[str], is_dir: bool, pattern: list[str], dir_only: bool, anchored: bool) -> bool:
        # Try the path itself and every parent directory of it.
        for depth in range(1, len(parts) + 1):
            prefix_is_dir = depth < len(parts) or is_dir
            if dir_only and not prefix_is_dir:
                continue
            prefix = parts[:depth]
            if anchored:
                if self._match_segments(pattern, prefix):
                    return True
            elif fnmatch.fnmatchcase(prefix[-1], pattern[0]):
                return True
        return False

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        parts = [p for p in rel_path.replace(os.sep, "/").split("/") if p]
        ignored = False
        for pattern, negate, dir_only, anchored in self._rules:
            if self._rule_matches(parts, is_dir, pattern, dir_only, anchored):
                ignored = not negate
        return ignored


def copy_project(src: str | Path, dest: str | Path) -> int:
    """
    Copy the project at `src` into `dest` (created if needed), skipping `.git`
    and ignored paths. Ignored directories are not descended into.

    Returns the number of copied files.
    """
    src_dir = Path(src).resolve()
    dst_dir = Path(dest).resolve()
    ignore = GitIgnore.from_file(src_dir / ".gitignore")
    copied = 0

    for root, dirs, filenames in os.walk(src_dir):
        root_path = Path(root)
        rel_root = root_path.relative_to(src_dir)
        dirs[:] = sorted(
            d for d in dirs if d != ".git" and not ignore.is_ignored((rel_root / d).as_posix(), is_dir=True)
        )
        (dst_dir / rel_root).mkdir(parents=True, exist_ok=True)
        for name in sorted(filenames):
            rel = rel_root / name
            if ignore.is_ignored(rel.as_posix()):
                continue
            shutil.copy2(root_path / name, dst_dir / rel, follow_symlinks=False)
            copied += 1

    logger.debug("Copied %d files from %s to %s", copied, src_dir, dst_dir)
    return copied


def dockerignore_text(project: Project) -> str:
    """`.dockerignore` contents: ignore git metadata, then everything git ignores."""
    text = DOCKERIGNORE_HEADER
    if project.gitignore_path.is_file():
        text += project.gitignore_path.read_text(encoding="utf-8")
    return text
