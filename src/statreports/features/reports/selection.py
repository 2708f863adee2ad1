"""Which products, companies or countries a report covers."""
from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from typing import Optional, Union

from .exceptions import EmptySelectionError

logger = logging.getLogger(__name__)

ALL_TOKEN = "all"


@dataclass(frozen=True)
class AllEntities:
    """Every entity available to the caller."""


@dataclass(frozen=True)
class EntityIds:
    """An explicit, ordered list of entity ids. Duplicates are kept."""

    ids: tuple[int, ...]

    def __post_init__(self):
        if not self.ids:
            raise EmptySelectionError("An explicit selection needs at least one id")


EntitySelection = Union[AllEntities, EntityIds]

ALL = AllEntities()


def parse_selection(raw: Optional[str]) -> EntitySelection:
    """Parses the ``products``/``companies`` query parameter.

    ``None``, an empty string or ``"all"`` select everything; otherwise the
    value is a comma-separated list of integer ids.
    """
    if raw is None or not raw.strip() or raw.strip().lower() == ALL_TOKEN:
        return ALL
    try:
        ids = tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError:
        raise EmptySelectionError(f"Selection must be '{ALL_TOKEN}' or a list of ids, got {raw!r}")
    return EntityIds(ids)


def resolve_selection(
    selection: EntitySelection,
    universe: Iterable[int],
    authorized_ids: Optional[Collection[int]] = None,
) -> list[int]:
    """Resolves a selection to the ids a report should fetch.

    ``All`` expands to the supplied universe; an explicit list is taken as
    given. Either way the result is intersected with ``authorized_ids`` when
    provided, keeping the original order.

    Raises:
        EmptySelectionError: if nothing is left after the intersection.
    """
    if isinstance(selection, AllEntities):
        candidates = list(universe)
    else:
        candidates = list(selection.ids)

    if authorized_ids is not None:
        allowed = set(authorized_ids)
        resolved = [entity_id for entity_id in candidates if entity_id in allowed]
    else:
        resolved = candidates

    if not resolved:
        logger.info(f"Selection {selection} resolved to no entities")
        raise EmptySelectionError("No authorized entities match the selection")
    return resolved
