# core/lifecycle.py
"""
Per-type lifecycle rule tables.

Each asset type has a "main line": an ordered list of states where every state
may move to the next one. The last state may also return to the first
(return to stock). No other edges exist.

A table is an immutable value. The API builds one at startup (built-in or
loaded from the JSON file named by ``settings.TRANSITION_RULES_PATH``) and
hands it to the transition engine.
"""
from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType

from core.exceptions import InvalidRuleTableError, InvalidTransitionError
from db_models.asset import AssetState, AssetType

logger = logging.getLogger(__name__)


STANDARD_LIFECYCLE: tuple[str, ...] = (
    AssetState.AVAILABLE.value,
    AssetState.SIGNED_OUT.value,
    AssetState.BUILDING.value,
    AssetState.READY_TO_GO.value,
    AssetState.ISSUED.value,
)

# Monitors are not built, they go straight from signed out to ready
MONITOR_LIFECYCLE: tuple[str, ...] = (
    AssetState.AVAILABLE.value,
    AssetState.SIGNED_OUT.value,
    AssetState.READY_TO_GO.value,
    AssetState.ISSUED.value,
)

# Width of the assets.type and assets.state columns
MAX_NAME_LENGTH = 20

DEFAULT_LIFECYCLES: dict[str, tuple[str, ...]] = {
    AssetType.MOBILE_PHONE.value: STANDARD_LIFECYCLE,
    AssetType.TABLET.value: STANDARD_LIFECYCLE,
    AssetType.DESKTOP.value: STANDARD_LIFECYCLE,
    AssetType.LAPTOP.value: STANDARD_LIFECYCLE,
    AssetType.MONITOR.value: MONITOR_LIFECYCLE,
}


def as_key(value) -> str:
    # str-based enums compare equal to their value but format differently
    return value.value if isinstance(value, AssetState | AssetType) else str(value)


@dataclass(frozen=True)
class TransitionRules:
    """Lifecycle order and adjacency, keyed by asset type."""

    lifecycles: Mapping[str, tuple[str, ...]]
    _adjacency: Mapping[str, Mapping[str, frozenset[str]]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self):
        adjacency: dict[str, dict[str, frozenset[str]]] = {}
        for asset_type, order in self.lifecycles.items():
            edges: dict[str, set[str]] = {state: set() for state in order}
            for current, nxt in zip(order, order[1:]):
                edges[current].add(nxt)
            # Return-to-stock edge
            edges[order[-1]].add(order[0])
            adjacency[asset_type] = MappingProxyType(
                {state: frozenset(targets) for state, targets in edges.items()}
            )
        object.__setattr__(self, "lifecycles", MappingProxyType(dict(self.lifecycles)))
        object.__setattr__(self, "_adjacency", MappingProxyType(adjacency))

    @classmethod
    def from_lifecycles(cls, lifecycles: Mapping[str, Sequence[str]]) -> TransitionRules:
        """
        Build a table from ordered state lists, validating each one.

        Raises:
            InvalidRuleTableError: empty table, too-short or repeating lifecycle,
                or a type or state name that does not fit the asset columns
        """
        if not lifecycles:
            raise InvalidRuleTableError("Rule table defines no asset types")

        cleaned: dict[str, tuple[str, ...]] = {}
        for asset_type, order in lifecycles.items():
            type_key = as_key(asset_type).strip()
            if not type_key or len(type_key) > MAX_NAME_LENGTH:
                raise InvalidRuleTableError(
                    f"Asset type name {type_key!r} must be 1-{MAX_NAME_LENGTH} characters"
                )
            if isinstance(order, str) or not isinstance(order, Sequence):
                raise InvalidRuleTableError(
                    f"Lifecycle for {asset_type} must be a list of states"
                )
            states = tuple(as_key(s).strip() for s in order)
            if len(states) < 2:
                raise InvalidRuleTableError(
                    f"Lifecycle for {asset_type} needs at least two states"
                )
            if any(not s for s in states):
                raise InvalidRuleTableError(f"Lifecycle for {asset_type} has a blank state")
            too_long = [s for s in states if len(s) > MAX_NAME_LENGTH]
            if too_long:
                raise InvalidRuleTableError(
                    f"Lifecycle for {asset_type} has states longer than "
                    f"{MAX_NAME_LENGTH} characters: {too_long}"
                )
            if len(set(states)) != len(states):
                raise InvalidRuleTableError(
                    f"Lifecycle for {asset_type} repeats a state: {list(states)}"
                )
            cleaned[type_key] = states

        return cls(lifecycles=cleaned)

    @classmethod
    def default(cls) -> TransitionRules:
        return cls.from_lifecycles(DEFAULT_LIFECYCLES)

    def lifecycle_order(self, asset_type) -> tuple[str, ...]:
        """Canonical display order for a type; empty for unknown types."""
        return self.lifecycles.get(as_key(asset_type), ())

    def initial_state(self, asset_type) -> str | None:
        order = self.lifecycle_order(asset_type)
        return order[0] if order else None

    def valid_next_states(self, asset_type, current_state) -> frozenset[str]:
        """
        Legal single-hop targets. Unknown (type, state) pairs yield an empty
        set; callers treat that as "no transition allowed".
        """
        edges = self._adjacency.get(as_key(asset_type))
        if edges is None:
            return frozenset()
        return edges.get(as_key(current_state), frozenset())

    def is_valid_transition(self, asset_type, from_state, to_state) -> bool:
        return as_key(to_state) in self.valid_next_states(asset_type, from_state)

    def find_path(self, asset_type, from_state, to_state) -> list[str]:
        """
        Shortest sequence of hops from ``from_state`` to ``to_state``,
        excluding the starting state.

        Raises:
            InvalidTransitionError: target equals start or is unreachable
        """
        start, goal = as_key(from_state), as_key(to_state)
        type_key = as_key(asset_type)
        if start == goal:
            raise InvalidTransitionError(
                type_key, start, goal, self.valid_next_states(type_key, start)
            )

        previous: dict[str, str] = {}
        queue = deque([start])
        seen = {start}
        while queue:
            state = queue.popleft()
            for nxt in sorted(self.valid_next_states(type_key, state)):
                if nxt in seen:
                    continue
                previous[nxt] = state
                if nxt == goal:
                    path = [goal]
                    while path[-1] in previous and previous[path[-1]] != start:
                        path.append(previous[path[-1]])
                    path.reverse()
                    return path
                seen.add(nxt)
                queue.append(nxt)

        raise InvalidTransitionError(
            type_key, start, goal, self.valid_next_states(type_key, start)
        )

    def known_states(self) -> frozenset[str]:
        return frozenset(s for order in self.lifecycles.values() for s in order)


def load_transition_rules(path: str | Path | None = None) -> TransitionRules:
    """
    Read a tenant rule table from JSON, or return the built-in table.

    The file maps asset type to its ordered lifecycle::

        {"LAPTOP": ["AVAILABLE", "SIGNED_OUT", "BUILDING", "READY_TO_GO", "ISSUED"]}

    Raises:
        InvalidRuleTableError: unreadable file or invalid table
    """
    if not path:
        return TransitionRules.default()

    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise InvalidRuleTableError(f"Cannot read rule table {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise InvalidRuleTableError(f"Rule table {path} must be a JSON object")

    rules = TransitionRules.from_lifecycles(raw)
    logger.info("Loaded transition rules for %d asset types from %s", len(rules.lifecycles), path)
    return rules


@lru_cache(maxsize=1)
def get_transition_rules() -> TransitionRules:
    """FastAPI dependency: the process-wide table from settings."""
    from config import settings

    return load_transition_rules(getattr(settings, "TRANSITION_RULES_PATH", None))
