"""Workload kinds and the two statements every backend must support."""

from __future__ import annotations

from enum import Enum

from .errors import ConfigError

INSERT_STMT = "INSERT INTO benchtab (pk, v1, v2) VALUES (?, ?, ?)"
SELECT_STMT = "SELECT v1, v2 FROM benchtab WHERE pk = ?"

TABLE = "benchtab"


class Workload(str, Enum):
    """Operation mix issued per task."""

    INSERTS = "inserts"
    SELECTS = "selects"
    MIXED = "mixed"

    @property
    def does_inserts(self) -> bool:
        return self in (Workload.INSERTS, Workload.MIXED)

    @property
    def does_selects(self) -> bool:
        return self in (Workload.SELECTS, Workload.MIXED)

    @classmethod
    def parse(cls, name: str | Workload) -> Workload:
        if isinstance(name, Workload):
            return name
        try:
            return cls(name)
        except ValueError:
            choices = ", ".join(w.value for w in cls)
            raise ConfigError(f"invalid workload type {name!r} (choose from {choices})") from None


WORKLOADS: list[str] = [w.value for w in Workload]


def expected_row(pk: int) -> tuple[int, int]:
    """Return the ``(v1, v2)`` payload stored for primary key *pk*."""
    return 2 * pk, 3 * pk
