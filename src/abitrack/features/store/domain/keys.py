"""Summary: Stage identifiers and namespaced artifact keys.
Why: Give every cached artifact a stable, sortable identity so iteration order
is defined by the data model rather than by call sites."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from abitrack.config.profile import LIVE_VERSION

HASH_LENGTH: Final[int] = 5
_PAIR_SEPARATOR: Final[str] = "|"


class Stage(StrEnum):
    """Pipeline stages, in full-build order."""

    DATE = "date"
    SONAME = "soname"
    CHANGELOG = "changelog"
    ABIDUMP = "abidump"
    COMPARE = "compare"
    ABIREPORT = "abireport"
    HEADERSDIFF = "headersdiff"
    PKGDIFF = "pkgdiff"
    GRAPH = "graph"


# Stages a user may target from the command line; COMPARE is internal to ABIREPORT.
BUILD_TARGETS: Final[tuple[Stage, ...]] = (
    Stage.DATE,
    Stage.SONAME,
    Stage.CHANGELOG,
    Stage.ABIDUMP,
    Stage.ABIREPORT,
    Stage.HEADERSDIFF,
    Stage.PKGDIFF,
    Stage.GRAPH,
)


def short_hash(*parts: str) -> str:
    """Return the first five hex digits of the MD5 of the concatenated parts."""

    digest = hashlib.md5("".join(parts).encode("utf-8"), usedforsecurity=False)
    return digest.hexdigest()[:HASH_LENGTH]


@dataclass(frozen=True, slots=True, order=True)
class ArtifactKey:
    """Identity of one cached artifact inside a library's store.

    ``scope`` is a version number, ``"older|newer"`` for pair artifacts, or
    empty for library-wide artifacts. ``item`` is an object hash or empty.
    """

    stage: Stage
    scope: str
    item: str = ""

    @classmethod
    def for_version(cls, stage: Stage, version: str, item: str = "") -> "ArtifactKey":
        return cls(stage, version, item)

    @classmethod
    def for_pair(cls, stage: Stage, older: str, newer: str, item: str = "") -> "ArtifactKey":
        return cls(stage, f"{older}{_PAIR_SEPARATOR}{newer}", item)

    @classmethod
    def for_library(cls, stage: Stage) -> "ArtifactKey":
        return cls(stage, "")

    @property
    def versions(self) -> tuple[str, ...]:
        """Version numbers this key depends on, oldest first for pairs."""

        if not self.scope:
            return ()
        return tuple(self.scope.split(_PAIR_SEPARATOR))

    @property
    def is_pair(self) -> bool:
        return len(self.versions) == 2

    @property
    def touches_live(self) -> bool:
        return LIVE_VERSION in self.versions

    def __str__(self) -> str:
        label = f"{self.stage}:{self.scope.replace(_PAIR_SEPARATOR, '→')}"
        return f"{label}:{self.item}" if self.item else label


__all__ = ["ArtifactKey", "BUILD_TARGETS", "HASH_LENGTH", "Stage", "short_hash"]
