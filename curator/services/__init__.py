"""Service container shared by job handlers, the worker and the CLI."""

from curator.services.container import Services

__all__ = ["Services"]
