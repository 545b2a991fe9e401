# listing_search/core/recovery.py

from __future__ import annotations

import logging
import math
import re

from listing_search.core.filters import RESET_CHANGES
from listing_search.core.normalize.text import normalize, parse_money
from listing_search.schemas.models import Filters, RecoveryAction

logger = logging.getLogger(__name__)

MAX_RECOVERY_ACTIONS = 4
BUDGET_RAISE = 1.15
MIN_PIECES, MAX_PIECES = 1, 6

_ROOM_RE = re.compile(r"([tf])(\d+)")


def format_dzd(amount: int) -> str:
    return f"{amount:,} DZD".replace(",", " ")


def _room_actions(rooms: str) -> list[RecoveryAction]:
    m = _ROOM_RE.search(normalize(rooms))
    if not m:
        return []
    family, pieces = m.group(1).upper(), int(m.group(2))
    actions = []
    if pieces > MIN_PIECES:
        token = f"{family}{pieces - 1}"
        actions.append(RecoveryAction(key="room-minus", label="Une piece de moins", hint=token, changes={"rooms": token}))
    if pieces < MAX_PIECES:
        token = f"{family}{pieces + 1}"
        actions.append(RecoveryAction(key="room-plus", label="Une piece de plus", hint=token, changes={"rooms": token}))
    return actions


def recovery_actions(filters: Filters, active_filter_count: int) -> list[RecoveryAction]:
    """
    Minimal relaxations for an empty result set, in filter order, capped at 4. Falls back to a
    single reset when nothing specific applies but some filter is active.
    """
    actions: list[RecoveryAction] = []

    if filters.district:
        actions.append(
            RecoveryAction(
                key="drop-district",
                label="Retirer le quartier",
                hint="Elargir a toute la commune",
                changes={"district": ""},
            )
        )
    if filters.commune:
        actions.append(
            RecoveryAction(
                key="drop-commune",
                label="Retirer la commune",
                hint="Rechercher sur tout Oran",
                changes={"commune": "", "district": ""},
            )
        )
    if filters.rooms:
        actions.extend(_room_actions(filters.rooms))

    current_max = parse_money(filters.price_max)
    if current_max and current_max > 0:
        raised = math.floor(current_max * BUDGET_RAISE + 0.5)
        if str(raised) != filters.price_max:
            actions.append(
                RecoveryAction(
                    key="raise-budget",
                    label="Augmenter budget +15%",
                    hint=format_dzd(raised),
                    changes={"price_max": str(raised)},
                )
            )

    if filters.included_amenities:
        actions.append(
            RecoveryAction(
                key="drop-amenities",
                label="Retirer equipements",
                hint="Elargir les resultats",
                changes={"included_amenities": frozenset()},
            )
        )
    if filters.excluded_amenities:
        actions.append(
            RecoveryAction(
                key="drop-excluded-amenities",
                label="Retirer exclusions",
                hint="Afficher tous les equipements",
                changes={"excluded_amenities": frozenset()},
            )
        )

    if not actions and active_filter_count > 0:
        actions.append(
            RecoveryAction(
                key="reset-all",
                label="Reinitialiser tout",
                hint="Revenir a une recherche ouverte",
                changes=dict(RESET_CHANGES),
            )
        )

    logger.debug("recovery: %d action(s)", min(len(actions), MAX_RECOVERY_ACTIONS))
    return actions[:MAX_RECOVERY_ACTIONS]
