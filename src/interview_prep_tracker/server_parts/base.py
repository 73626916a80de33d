from __future__ import annotations

from types import ModuleType

from . import base_runtime as _base_runtime
from . import base_store as _base_store


def _export_all(module: ModuleType) -> None:
    for name, value in module.__dict__.items():
        if name.startswith("__"):
            continue
        globals()[name] = value


_export_all(_base_runtime)
_export_all(_base_store)

# Explicitly include private helpers in star-imports from this module.
__all__ = [name for name in globals() if not name.startswith("__")]
