"""
renderer.py

Responsibility: Render the Dockerfile templates shipped with the package.

Rules:
- Templates live in `nodebuilder/templates/` and are rendered with Jinja2.
- Undefined variables are errors, never silently empty.
- Directory templates are walked in sorted order; `*.j2` files are rendered,
  everything else is copied byte-for-byte.

This module intentionally does NOT know about docker, projects, or CLI parsing.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from nodebuilder.errors import NodeBuilderError

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

DOCKERFILE_TEMPLATES = {
    "prod": "app-prod/Dockerfile.j2",
    "dev": "app-dev/Dockerfile.j2",
}


class RenderError(NodeBuilderError):
    pass


@dataclass(frozen=True)
class RenderResult:
    rendered_files: int
    copied_files: int


def _environment(loader: FileSystemLoader | None = None) -> Environment:
    return Environment(
        loader=loader,
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def render_dockerfile(kind: str, context: dict[str, Any], *, templates_dir: str | Path = TEMPLATES_DIR) -> str:
    """
    Render the `prod` or `dev` application Dockerfile.

    Both templates expect `base_image` (e.g. `kthse/nodejs-echo:12`).
    """
    try:
        name = DOCKERFILE_TEMPLATES[kind]
    except KeyError:
        raise RenderError(f"Unknown Dockerfile template: {kind!r}") from None

    env = _environment(FileSystemLoader(str(templates_dir)))
    try:
        return env.get_template(name).render(**context)
    except TemplateError as e:
        raise RenderError(f"Failed rendering template file: {name}") from e


def render_template_dir(
    *,
    template_dir: str | Path,
    destination_dir: str | Path,
    context: dict[str, Any],
) -> RenderResult:
    """
    Render a template directory (e.g. a build context) into destination_dir.

    `*.j2` files are rendered and lose the suffix; every other file is copied
    byte-for-byte, so binaries and brace-heavy files are safe in a template dir.
    """
    tpl_dir = Path(template_dir).resolve()
    dst_dir = Path(destination_dir).resolve()

    if not tpl_dir.is_dir():
        raise RenderError(f"Template directory not found: {tpl_dir}")

    env = _environment(FileSystemLoader(str(tpl_dir)))
    rendered = 0
    copied = 0

    for src_path in sorted(p for p in tpl_dir.rglob("*") if p.is_file()):
        rel = src_path.relative_to(tpl_dir)
        dst_path = dst_dir / rel
        dst_path.parent.mkdir(parents=True, exist_ok=True)

        if rel.suffix != ".j2":
            shutil.copy2(src_path, dst_path)
            copied += 1
            continue

        try:
            out = env.get_template(rel.as_posix()).render(**context)
        except TemplateError as e:
            raise RenderError(f"Failed rendering template file: {rel}") from e
        dst_path.with_suffix("").write_text(out, encoding="utf-8", newline="\n")
        rendered += 1

    return RenderResult(rendered_files=rendered, copied_files=copied)
