"""Backend registry -- lazy imports so missing optional client libraries don't crash the CLI."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from ..errors import ConfigError

if TYPE_CHECKING:
    from ..config import Config
    from .base import Backend


def get_backends() -> dict[str, type[Backend]]:
    """Return available backend classes, skipping those with missing deps."""
    registry: dict[str, type[Backend]] = {}

    def _try_register(name: str, module: str, cls_name: str) -> None:
        try:
            mod = __import__(module, fromlist=[cls_name])
            registry[name] = getattr(mod, cls_name)
        except ImportError as e:
            # Only suppress if the missing module is an expected optional dep.
            missing = getattr(e, "name", None)
            expected_missing = {"pymysql", "stratadb"}
            if missing and missing.split(".")[0] in expected_missing:
                pass  # optional client library not installed -- skip backend
            else:
                print(f"Warning: failed to load {name} backend: {e}", file=sys.stderr)

    _try_register("memory", "benchtab.backends.memory", "MemoryBackend")
    _try_register("mysql", "benchtab.backends.mysql", "MySQLBackend")
    _try_register("strata", "benchtab.backends.strata", "StrataBackend")

    return registry


def create_backend(config: Config) -> Backend:
    """Instantiate (but do not connect) the backend named by *config*."""
    backends = get_backends()
    cls = backends.get(config.backend)
    if cls is None:
        available = ", ".join(sorted(backends)) or "none"
        raise ConfigError(f"unknown or unavailable backend {config.backend!r} (available: {available})")
    return cls(config)
