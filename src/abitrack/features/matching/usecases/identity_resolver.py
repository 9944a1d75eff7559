"""src/abitrack/features/matching/usecases/identity_resolver.py
Where: Matching feature usecases layer.
What: Decide which object of the older version corresponds to which object of
the newer one, and classify the rest as added or removed.
Why: A library that bumps its soname or file name between releases must still
be compared against its predecessor instead of showing up as removed+added.
Assumptions: - Inputs are relative paths under each version's installed root.
Trade-offs: - Matching is greedy in sorted order; a candidate claimed by an
  earlier object is not offered again, which keeps the mapping a bijection.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import final

from abitrack.features.matching.domain.object_names import (
    file_name,
    short_name,
    super_short_name,
)
from abitrack.platform.logging import logger

KERNEL_IMAGE = "vmlinux"


@dataclass(frozen=True, slots=True)
class SonameChange:
    old_object: str
    new_object: str
    old_soname: str
    new_soname: str


@dataclass(frozen=True, slots=True)
class ObjectMapping:
    """Result of matching two versions' object sets.

    ``mapped`` preserves the order in which old objects were considered.
    """

    mapped: dict[str, str] = field(default_factory=dict)
    removed: tuple[str, ...] = ()
    added: tuple[str, ...] = ()
    renamed: dict[str, str] = field(default_factory=dict)
    soname_changes: tuple[SonameChange, ...] = ()
    ambiguities: tuple[str, ...] = ()


def _sort_objects(objects: Iterable[str], *, kernel_mode: bool) -> list[str]:
    unique = set(objects)
    if kernel_mode:
        ordered = sorted(unique, key=lambda path: (file_name(path).lower(), path))
        return sorted(ordered, key=lambda path: file_name(path) != KERNEL_IMAGE)
    return sorted(unique, key=lambda path: (path.lower(), path))


def _known(sonames: Mapping[str, str | None], path: str) -> str | None:
    value = sonames.get(path)
    if not value or value == "None":
        return None
    return value


@final
class ObjectIdentityResolver:
    """Tiered object matcher: soname, exact path, short name, super-short name."""

    def __init__(self, *, kernel_mode: bool = False) -> None:
        self.kernel_mode: bool = kernel_mode

    def resolve(
        self,
        objects_old: Iterable[str],
        objects_new: Iterable[str],
        soname_old: Mapping[str, str | None],
        soname_new: Mapping[str, str | None],
    ) -> ObjectMapping:
        """Match ``objects_old`` against ``objects_new``.

        The result does not depend on the order of the input collections.
        """

        old = _sort_objects(objects_old, kernel_mode=self.kernel_mode)
        new = _sort_objects(objects_new, kernel_mode=self.kernel_mode)
        new_set = set(new)

        by_soname = self._index(new, lambda path: _known(soname_new, path))
        by_short = self._index(new, short_name)
        by_super_short = self._index(new, super_short_name)

        mapped: dict[str, str] = {}
        claimed: set[str] = set()
        removed: list[str] = []
        ambiguities: list[str] = []

        for old_object in old:
            target: str | None = None

            soname = _known(soname_old, old_object)
            if soname is not None:
                candidates = by_soname.get(soname, [])
                if len(candidates) > 1:
                    message = (
                        f"two or more objects with the same SONAME found: {soname} "
                        f"({', '.join(candidates)})"
                    )
                    ambiguities.append(message)
                    logger.error(
                        "%s",
                        message,
                        extra={
                            "pipeline_event": "pipeline.resolver.ambiguity",
                            "item": old_object,
                        },
                    )
                elif candidates and candidates[0] not in claimed:
                    target = candidates[0]

            if target is None and old_object in new_set and old_object not in claimed:
                target = old_object

            if target is None:
                target = self._unique(by_short, short_name(old_object), claimed)

            if target is None:
                target = self._unique(by_super_short, super_short_name(old_object), claimed)

            if target is None:
                removed.append(old_object)
                continue

            mapped[old_object] = target
            claimed.add(target)

        added = [path for path in new if path not in claimed]
        renamed: dict[str, str] = {}

        if not mapped and len(old) == 1 and len(new) == 1:
            mapped[old[0]] = new[0]
            renamed[old[0]] = new[0]
            removed = []
            added = []
            logger.debug("Treating %s -> %s as a renamed object", old[0], new[0])

        changes: list[SonameChange] = []
        for old_object in sorted(mapped, key=lambda path: (path.lower(), path)):
            new_object = mapped[old_object]
            before = _known(soname_old, old_object)
            after = _known(soname_new, new_object)
            if before is None and after is None:
                continue
            # an object without a soname is known by its file name
            before = before or file_name(old_object)
            after = after or file_name(new_object)
            if before != after:
                changes.append(SonameChange(old_object, new_object, before, after))

        mapping = ObjectMapping(
            mapped=mapped,
            removed=tuple(removed),
            added=tuple(added),
            renamed=renamed,
            soname_changes=tuple(changes),
            ambiguities=tuple(ambiguities),
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Resolved objects: mapped=%d added=%d removed=%d renamed=%d",
                len(mapping.mapped),
                len(mapping.added),
                len(mapping.removed),
                len(mapping.renamed),
            )
        return mapping

    @staticmethod
    def _index(
        objects: Iterable[str],
        namer: Callable[[str], str | None],
    ) -> dict[str, list[str]]:
        index: dict[str, list[str]] = defaultdict(list)
        for path in objects:
            name = namer(path)
            if name:
                index[name].append(path)
        return dict(index)

    @staticmethod
    def _unique(index: Mapping[str, list[str]], name: str | None, claimed: set[str]) -> str | None:
        if not name:
            return None
        candidates = index.get(name, [])
        if len(candidates) != 1 or candidates[0] in claimed:
            return None
        return candidates[0]


__all__ = ["KERNEL_IMAGE", "ObjectIdentityResolver", "ObjectMapping", "SonameChange"]
