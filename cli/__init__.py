"""CLI package for interacting with the sensor reliability service."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# ``cli.app`` stays a module path so tests can patch ``cli.app.ApiClient``.

__all__ = []
