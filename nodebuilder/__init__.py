"""
nodebuilder package

This package implements a CLI that builds and tags Docker images for Node.js apps.

Key responsibilities are split across modules:
- `config.py`: load settings from defaults, `nodebuilder.yml`, `.env` and the environment
- `docker.py`: isolated Docker CLI invocations (build / run / inspect / tag / push)
- `project.py`: Node.js project detection and build-context preparation
- `renderer.py`: Dockerfile template rendering
- `reporter.py`: terminal output (messages, confirmations, spinners)
- `pipeline.py`: the `app` and `node` build sequences
- `cli.py`: CLI entrypoint and error reporting
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
