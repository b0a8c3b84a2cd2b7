from __future__ import annotations


class NodeBuilderError(RuntimeError):
    """Base class for every error the CLI reports without a traceback."""
