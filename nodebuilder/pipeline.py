"""
pipeline.py

Responsibility: The build sequences behind the `app` and `node` commands.

`app` flow:
1) Identify the Node.js project, its name and its Node.js version
2) Copy the project to a temp build context and build the prod and dev images
3) Run `npm test` inside the dev image
4) Tag the prod image
5) (Optional) Write Dockerfile / .dockerignore into the project

`node` flow:
1) Show the Docker version
2) Build the base image from the bundled `node/` template
3) Tag it by Node.js major / minor / patch version
4) (Optional) Push the tags

Every step waits for the previous one; the first failure raises and stops the run.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

from rich.filesize import decimal

from nodebuilder.config import Settings
from nodebuilder.docker import DockerClient, DockerError
from nodebuilder.errors import NodeBuilderError
from nodebuilder.project import Project, copy_project, dockerignore_text, find_project
from nodebuilder.renderer import TEMPLATES_DIR, render_dockerfile, render_template_dir
from nodebuilder.reporter import Reporter

logger = logging.getLogger(__name__)


class AbortedError(NodeBuilderError):
    """The user answered "no" to an interactive confirmation."""


class UnitTestFailure(NodeBuilderError):
    """`npm test` exited non-zero inside the development image."""

    def __init__(self, image_id: str, cause: DockerError) -> None:
        super().__init__("Unit test failed")
        self.image_id = image_id
        self.cause = cause


@dataclass(frozen=True)
class BuiltImages:
    prod: str
    dev: str


@dataclass(frozen=True)
class ImageInfo:
    image_id: str
    node_version: str
    npm_version: str
    size: int


def inspect_image(docker: DockerClient, image_id: str) -> ImageInfo:
    return ImageInfo(
        image_id=image_id,
        node_version=docker.run(image_id, "node -v"),
        npm_version=docker.run(image_id, "npm -v"),
        size=docker.image_size(image_id),
    )


def semver_tags(repository: str, node_version: str) -> list[str]:
    """`("base", "v12.22.1")` -> `["base:12", "base:12.22", "base:12.22.1"]`."""
    parts = node_version.strip().lstrip("v").split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise NodeBuilderError(f"Unexpected Node.js version: {node_version!r}")
    major, minor, patch = parts
    return [
        f"{repository}:{major}",
        f"{repository}:{major}.{minor}",
        f"{repository}:{major}.{minor}.{patch}",
    ]


class AppPipeline:
    def __init__(self, *, cwd: str | Path, settings: Settings, docker: DockerClient, reporter: Reporter) -> None:
        self.cwd = Path(cwd)
        self.settings = settings
        self.docker = docker
        self.reporter = reporter
        self._project: Project | None = None
        self._node_version: str | None = None

    def _confirm(self, question: str, refusal: str) -> None:
        if not self.reporter.confirm(question):
            self.reporter.error(refusal)
            raise AbortedError(refusal)

    @property
    def project(self) -> Project:
        if self._project is None:
            self._project = find_project(self.cwd)
        return self._project

    @property
    def base_image(self) -> str:
        return f"{self.settings.base_image}:{self.read_node_version()}"

    def identify_project(self) -> Project:
        project = self.project
        self._confirm(
            "Current directory identified as Node.js project. Is it correct?",
            "Project is mis-identified as Node.js app",
        )
        self.reporter.success("Project identified as Node.js")
        return project

    def read_project_name(self) -> str:
        logger.debug('Reading field "name" of package.json')
        name = self.project.name
        self._confirm(
            f'The name of the project is "{name}". Is it correct?',
            'The name of the project should be in "package.json"',
        )
        self.reporter.success(f"Obtained name of the project: {name} (from package.json)")
        return name

    def read_node_version(self) -> str:
        if self._node_version is not None:
            return self._node_version

        logger.debug('Reading "engines.node" from package.json')
        version = self.project.node_version(self.settings.default_node_version)
        self._confirm(f"Node.js version required is: {version}", "Failed to guess required Node.js version")
        self.reporter.success(f"Node.js version required for this project: {version}")
        self._node_version = version
        return version

    def build_images(self) -> BuiltImages:
        context = {"base_image": self.base_image}

        with self.reporter.spinner("Copying project to temp. directory") as status:
            with tempfile.TemporaryDirectory(prefix="nodebuilder-") as tmp:
                build_dir = Path(tmp)
                copy_project(self.project.root, build_dir)
                dockerfile = build_dir / "Dockerfile"

                status.update("Generating Dockerfile for production")
                dockerfile.write_text(render_dockerfile("prod", context), encoding="utf-8")

                status.update("Building Docker image")
                prod = self.docker.build_image(build_dir)

                status.update("Generating Dockerfile for development")
                dockerfile.write_text(render_dockerfile("dev", context), encoding="utf-8")

                status.update("Building Docker image for development")
                dev = self.docker.build_image(build_dir)

                status.update("Removing temp directory")

            status.update("Getting Image information")
            info = inspect_image(self.docker, prod)

        self.reporter.success("Docker image correctly built")
        self.reporter.log(f"Node.js version: {info.node_version}")
        self.reporter.log(f"npm version:     {info.npm_version}")
        self.reporter.log(f"Docker image (prod) ID: {prod}")
        self.reporter.log(f"Docker image (dev) ID : {dev}")
        self.reporter.log(f"Docker image size (prod): {decimal(info.size)}")
        self.reporter.tip(f"Run the image with `docker run {prod} --env-file .env`")
        return BuiltImages(prod=prod, dev=dev)

    def run_unit_tests(self, image_id: str) -> None:
        try:
            with self.reporter.spinner("Running unit test"):
                self.docker.run(image_id, "npm test")
        except DockerError as e:
            if e.missing_executable:
                raise
            self.reporter.log(e.stdout)
            self.reporter.log(e.stderr)
            self.reporter.log()
            self.reporter.error("Unit test failed. See results above")
            self.reporter.tip("Fix the tests by using `npm test` (it is probably faster than this tool)")
            self.reporter.tip(f"Worked? Then try `docker run {image_id} npm test`")
            self.reporter.log()
            raise UnitTestFailure(image_id, e) from e

        self.reporter.success("Unit test run successfully")

    def image_tags(self) -> list[str]:
        name = self.project.image_name
        tags = [f"{name}:latest"]
        if self.settings.git_branch:
            tags.append(f"{name}:latest-{self.settings.git_branch}")
        if self.settings.build_number:
            tags.append(f"{name}:{self.settings.build_number}")
        return tags

    def tag_image(self, image_id: str) -> list[str]:
        tags = self.image_tags()

        with self.reporter.spinner("Tagging docker image") as status:
            for tag in tags:
                status.update(f'Tagging docker image: "{tag}"')
                self.docker.tag_image(image_id, tag)

        self.reporter.success("Docker image tagged successfully")
        for tag in tags:
            self.reporter.log(f'Image is tagged as "{tag}"')
        for tag in tags:
            self.reporter.tip(f"Run the image with `docker run {tag} --env-file .env`")
        return tags

    def generate_files(self) -> None:
        root = self.project.root
        dockerfile = root / "Dockerfile"
        dockerignore = root / ".dockerignore"
        overwrite_dockerfile = dockerfile.exists()
        overwrite_dockerignore = dockerignore.exists()

        with self.reporter.spinner("Generating Dockerfile"):
            dockerfile.write_text(render_dockerfile("prod", {"base_image": self.base_image}), encoding="utf-8")
            dockerignore.write_text(dockerignore_text(self.project), encoding="utf-8")

        for path, overwritten in ((dockerfile, overwrite_dockerfile), (dockerignore, overwrite_dockerignore)):
            if overwritten:
                self.reporter.warn(f"Overwritten {path.name} with the one used to build the image")
            else:
                self.reporter.success(f"Generated {path.name} used to build the image")

        self.reporter.tip("Reproduce the Docker build yourself: `docker build .`")

    def run(self, *, generate: bool = False) -> BuiltImages:
        self.identify_project()
        self.reporter.log()

        self.read_project_name()
        self.reporter.log()

        self.read_node_version()
        self.reporter.log()

        images = self.build_images()
        self.reporter.log()

        self.run_unit_tests(images.dev)
        self.reporter.log()

        self.tag_image(images.prod)
        self.reporter.log()

        if generate:
            self.generate_files()
            self.reporter.log()

        return images


class NodePipeline:
    def __init__(
        self,
        *,
        settings: Settings,
        docker: DockerClient,
        reporter: Reporter,
        node_version: str | None = None,
        templates_dir: str | Path = TEMPLATES_DIR,
    ) -> None:
        self.settings = settings
        self.docker = docker
        self.reporter = reporter
        self.node_version = node_version or settings.default_node_version
        self.templates_dir = Path(templates_dir)

    def show_info(self) -> str:
        with self.reporter.spinner("Getting docker version"):
            version = self.docker.version()

        self.reporter.success("Getting environment information")
        self.reporter.log(f"Docker version:     {version}")
        return version

    def build(self) -> ImageInfo:
        with self.reporter.spinner("Building the Docker image...") as status:
            with tempfile.TemporaryDirectory(prefix="nodebuilder-node-") as tmp:
                render_template_dir(
                    template_dir=self.templates_dir / "node",
                    destination_dir=tmp,
                    context={"node_version": self.node_version},
                )
                image_id = self.docker.build_image(tmp)

            status.update("Getting image data...")
            info = inspect_image(self.docker, image_id)

        self.reporter.success("Docker image built")
        self.reporter.log(f"Node.js version:   {info.node_version}")
        self.reporter.log(f"npm version:       {info.npm_version}")
        self.reporter.log(f"Docker image ID:   {info.image_id}")
        self.reporter.log(f"Docker image size: {decimal(info.size)}")
        return info

    def tag_image(self, info: ImageInfo) -> list[str]:
        tags = semver_tags(self.settings.base_image, info.node_version)
        for tag in tags:
            self.docker.tag_image(info.image_id, tag)

        self.reporter.success("Docker image tagged successfully")
        for tag in tags:
            self.reporter.log(f'Image is tagged as "{tag}"')
        return tags

    def push_tags(self, tags: list[str]) -> None:
        with self.reporter.spinner("Pushing to Docker registry") as status:
            for tag in tags:
                status.update(f"Pushing {tag}")
                self.docker.push(tag)

        self.reporter.success("Tags pushed to Docker")
        for tag in tags:
            self.reporter.log(tag)

    def run(self, *, push: bool = False) -> list[str]:
        self.show_info()
        self.reporter.log()

        info = self.build()
        self.reporter.log()

        tags = self.tag_image(info)
        self.reporter.log()

        if push:
            self.push_tags(tags)
            self.reporter.log()

        return tags
