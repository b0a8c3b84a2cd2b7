"""
cli.py

Responsibility: CLI entrypoint for nodebuilder.

Commands:
- `app`: build, test and tag the Node.js app in the working directory
- `node`: build and tag the Node.js base image

This module should orchestrate behavior but keep concerns isolated:
- Settings: `config.py`
- Docker invocations: `docker.py`
- Build sequences: `pipeline.py`
- Terminal output: `reporter.py`
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from nodebuilder import __version__
from nodebuilder.config import ConfigError, Settings, is_ci, load_settings
from nodebuilder.docker import DockerClient, DockerError
from nodebuilder.errors import NodeBuilderError
from nodebuilder.pipeline import AbortedError, AppPipeline, NodePipeline, UnitTestFailure
from nodebuilder.reporter import Reporter, configure_logging


def _report_docker_error(reporter: Reporter, e: DockerError) -> None:
    reporter.error(f"Failed when executing command: {e.command_line}")
    if e.missing_executable:
        reporter.error(f'Executable not found "{e.missing_executable}"')
        return
    if not (e.stdout.strip() or e.stderr.strip()):
        reporter.error(e)
        return
    for output in (e.stdout, e.stderr):
        if output.strip():
            reporter.log(output.rstrip())


def _report_unexpected(reporter: Reporter, e: BaseException) -> None:
    reporter.error("Something unexpected happened")
    reporter.log()
    reporter.error(repr(e))
    reporter.log()
    reporter.log("Please open an issue and attach the information above")


def app_cmd(args: argparse.Namespace, cwd: Path, settings: Settings, reporter: Reporter) -> int:
    pipeline = AppPipeline(
        cwd=cwd,
        settings=settings,
        docker=DockerClient(settings.docker_bin),
        reporter=reporter,
    )
    pipeline.run(generate=bool(args.gen))
    return 0


def node_cmd(args: argparse.Namespace, cwd: Path, settings: Settings, reporter: Reporter) -> int:
    pipeline = NodePipeline(
        settings=settings,
        docker=DockerClient(settings.docker_bin),
        reporter=reporter,
        node_version=args.node_version,
    )
    pipeline.run(push=bool(args.push))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nodebuilder", description="Build and tag Docker images for Node.js apps")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    a = sub.add_parser("app", help="Build the Node.js app in the current directory")
    a.add_argument("--gen", action="store_true", help="Generate Dockerfile and .dockerignore files")
    a.add_argument("-i", "--interactive", action="store_true", help="Run in interactive mode (ask yes/no on every step)")
    a.add_argument("-v", "--verbose", action="store_true", help="Show lots of logs")
    a.add_argument("--cwd", default=".", help="Project directory (default: current directory)")
    a.set_defaults(func=app_cmd)

    n = sub.add_parser("node", help="Build a Node.js base image")
    n.add_argument("--node-version", default=None, help="Node.js version of the base image (default: from settings)")
    n.add_argument("--push", action="store_true", help="Push the tags to the Docker registry")
    n.add_argument("-v", "--verbose", action="store_true", help="Show lots of logs")
    n.set_defaults(func=node_cmd, interactive=False)

    return p


def main(argv: list[str] | None = None, reporter: Reporter | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(bool(args.verbose))
    cwd = Path(getattr(args, "cwd", ".")).resolve()
    try:
        settings = load_settings(cwd)
    except ConfigError as e:
        (reporter or Reporter(ci=is_ci(os.environ))).error(e)
        return 1
    if reporter is None:
        reporter = Reporter(ci=settings.ci, interactive=bool(args.interactive))

    try:
        return int(args.func(args, cwd, settings, reporter))
    except DockerError as e:
        _report_docker_error(reporter, e)
        return 1
    except (UnitTestFailure, AbortedError):
        # Already reported by the pipeline.
        return 1
    except NodeBuilderError as e:
        reporter.error(e)
        return 1
    except KeyboardInterrupt:
        reporter.log()
        reporter.warn("Interrupted")
        return 130
    except Exception as e:  # noqa: BLE001 - last-resort report, exit non-zero
        _report_unexpected(reporter, e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
