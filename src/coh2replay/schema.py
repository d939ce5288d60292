from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal, TypeAlias

IdentityKind: TypeAlias = Literal["start_position", "profile_id"]
SchemaName: TypeAlias = Literal["legacy", "modern"]

# Absolute offset of the first chunky container; the header is zero padded up to it.
FIRST_CONTAINER_OFFSET: Final[int] = 76


@dataclass(frozen=True, slots=True)
class SchemaRevision:
    """One known layout of the recording format.

    Chunk versions are not comparable across revisions; each revision lists the exact
    (tag, version) pairs it decodes, and `records.decoders_for` picks the record layouts
    that belong to it.
    """

    name: SchemaName
    sdsc_version: int
    data_version: int
    identity: IdentityKind
    scan_ticks: bool
    # Further match-data versions that share the layout of `data_version`.
    data_version_aliases: tuple[int, ...] = ()


LEGACY: Final[SchemaRevision] = SchemaRevision(
    name="legacy",
    sdsc_version=0x7DD,
    data_version=0x4,
    identity="start_position",
    scan_ticks=False,
)

MODERN: Final[SchemaRevision] = SchemaRevision(
    name="modern",
    sdsc_version=0x7E4,
    data_version=0x1B,
    identity="profile_id",
    scan_ticks=True,
    data_version_aliases=(0x1C,),
)

REVISIONS: Final[dict[str, SchemaRevision]] = {rev.name: rev for rev in (LEGACY, MODERN)}


def detect_revision(lead: int) -> SchemaRevision:
    """Pick the revision from the first u16 of the file.

    Modern recordings open with a zero u16 followed by a u16 version; legacy recordings store
    the version as a single u32, so their first u16 is non-zero.
    """
    return MODERN if int(lead) == 0 else LEGACY


def revision_by_name(name: str) -> SchemaRevision:
    try:
        return REVISIONS[str(name)]
    except KeyError:
        available = ", ".join(sorted(REVISIONS))
        raise ValueError(f"unknown schema {name!r}. Available: {available}") from None


__all__ = [
    "FIRST_CONTAINER_OFFSET",
    "LEGACY",
    "MODERN",
    "REVISIONS",
    "IdentityKind",
    "SchemaName",
    "SchemaRevision",
    "detect_revision",
    "revision_by_name",
]
