"""
docker.py

Responsibility: Isolate all direct Docker CLI interaction.

This module must be the only place that:
- Builds `docker ...` argument lists
- Executes the docker executable
- Interprets its output (image ids, sizes, versions)

Everything else (project detection, templating, orchestration) should use this client.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Sequence

from nodebuilder.errors import NodeBuilderError

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class DockerError(NodeBuilderError):
    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str],
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
        missing_executable: str | None = None,
    ) -> None:
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.missing_executable = missing_executable

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)


class DockerClient:
    def __init__(self, docker_bin: str = "docker", runner: Runner | None = None) -> None:
        self._docker_bin = docker_bin
        self._runner = runner or subprocess.run

    def _run(self, *args: str) -> str:
        """
        Run `docker <args>` and return its stripped stdout, raising DockerError on failure.
        """
        cmd = [self._docker_bin, *args]
        logger.debug("Running: %s", shlex.join(cmd))
        try:
            result = self._runner(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        except FileNotFoundError as e:
            raise DockerError(
                f'Executable not found "{self._docker_bin}"',
                command=cmd,
                missing_executable=self._docker_bin,
            ) from e
        except subprocess.CalledProcessError as e:
            raise DockerError(
                f"Command failed with exit code {e.returncode}: {shlex.join(cmd)}",
                command=cmd,
                returncode=e.returncode,
                stdout=e.stdout or "",
                stderr=e.stderr or "",
            ) from e
        return (result.stdout or "").strip()

    def version(self) -> str:
        """Return the version of the Docker server."""
        return self._run("version", "--format", "{{.Server.Version}}")

    def build_image(self, context: str | Path) -> str:
        """
        Build the image in `context` and return its id.

        The id is read from an `--iidfile` written in a private temp directory,
        so nothing has to be parsed out of the build output.
        """
        context_dir = Path(context)
        if not (context_dir / "Dockerfile").is_file():
            raise DockerError(f"No Dockerfile in build context: {context_dir}", command=[self._docker_bin, "image", "build"])

        with tempfile.TemporaryDirectory(prefix="nodebuilder-iid-") as tmp:
            iid_path = Path(tmp) / "iid"
            self._run("image", "build", "--iidfile", str(iid_path), str(context_dir))
            image_id = iid_path.read_text(encoding="utf-8").strip()

        logger.debug("Built image %s from %s", image_id, context_dir)
        return image_id

    def image_size(self, image_id: str) -> int:
        """Return the size of an image in bytes."""
        out = self._run("image", "inspect", image_id, "--format={{.Size}}")
        try:
            return int(out)
        except ValueError as e:
            raise DockerError(
                f"Unexpected output from docker image inspect: {out!r}",
                command=[self._docker_bin, "image", "inspect", image_id],
            ) from e

    def run(self, image_id: str, command: str) -> str:
        """Run `command` in a throwaway container of `image_id` and return its stdout."""
        return self._run("run", "--rm", image_id, *shlex.split(command))

    def tag_image(self, image_id: str, tag: str) -> None:
        self._run("image", "tag", image_id, tag)

    def push(self, tag: str) -> None:
        self._run("push", tag)
