from __future__ import annotations

import io
import json
import subprocess
from pathlib import Path

import pytest
from rich.console import Console

from nodebuilder.config import Settings
from nodebuilder.docker import DockerClient
from nodebuilder.reporter import Reporter


class FakeRunner:
    """
    Stands in for `subprocess.run`: records every argv and answers like a docker daemon.

    `fail(*prefix)` makes every command whose arguments start with `prefix` exit non-zero.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.outputs: dict[tuple[str, ...], str] = {
            ("version",): "24.0.7",
            ("image", "inspect"): "123456789",
            ("node", "-v"): "v12.22.1",
            ("npm", "-v"): "6.14.12",
            ("npm", "test"): "1 passing",
        }
        self._failures: list[tuple[tuple[str, ...], int, str, str]] = []
        self._built = 0
        self.missing = False

    def fail(self, *prefix: str, returncode: int = 1, stdout: str = "", stderr: str = "") -> None:
        self._failures.append((prefix, returncode, stdout, stderr))

    @property
    def subcommands(self) -> list[list[str]]:
        return [c[1:] for c in self.calls]

    def _stdout(self, args: list[str]) -> str:
        if args[0] == "run":
            return self.outputs.get(tuple(args[3:]), "")
        for key, out in self.outputs.items():
            if tuple(args[: len(key)]) == key:
                return out
        return ""

    def __call__(self, cmd, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        if self.missing:
            raise FileNotFoundError(2, "No such file or directory", cmd[0])

        args = cmd[1:]
        for prefix, returncode, out, err in self._failures:
            if tuple(args[: len(prefix)]) == prefix:
                raise subprocess.CalledProcessError(returncode, cmd, output=out, stderr=err)

        if args[:2] == ["image", "build"]:
            self._built += 1
            iid = args[args.index("--iidfile") + 1]
            Path(iid).write_text(f"sha256:image{self._built}", encoding="utf-8")

        return subprocess.CompletedProcess(cmd, 0, stdout=self._stdout(args) + "\n", stderr="")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GIT_LOCAL_BRANCH", "BUILD_NUMBER", "CI", "NODEBUILDER_BASE_IMAGE", "NODEBUILDER_NODE_VERSION", "NODEBUILDER_DOCKER"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def docker(runner: FakeRunner) -> DockerClient:
    return DockerClient("docker", runner=runner)


@pytest.fixture()
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture()
def reporter(output: io.StringIO) -> Reporter:
    console = Console(file=output, width=200, no_color=True)
    return Reporter(ci=True, console=console)


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def node_project(tmp_path: Path) -> Path:
    root = tmp_path / "app"
    root.mkdir()
    (root / "package.json").write_text(
        json.dumps({"name": "my-app", "engines": {"node": ">=14.17"}, "scripts": {"test": "mocha"}}),
        encoding="utf-8",
    )
    (root / ".gitignore").write_text("node_modules/\n*.log\n", encoding="utf-8")
    (root / "index.js").write_text("console.log('hi')\n", encoding="utf-8")
    (root / "debug.log").write_text("noise\n", encoding="utf-8")
    (root / "node_modules" / "dep").mkdir(parents=True)
    (root / "node_modules" / "dep" / "index.js").write_text("", encoding="utf-8")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    return root
