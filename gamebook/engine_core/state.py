"""
Game State - The single mutable record of a play session.

Design principles:
- One live GameState per Engine; only the effect applier and scene
  transitions mutate it
- Serializable: to_dict()/from_dict() round-trip through the save blob
- Snapshots are deep copies, so callers can never alias engine internals

Save blob layout (camelCase, JSON):
    {version, contentVersion, timestamp, currentSceneId,
     history: [{sceneId, timestamp, choiceLabel?, visitedCount}],
     stats, flags: [..], inventory: [[itemId, count], ..], factions,
     randomSeed?}
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
from copy import deepcopy

from ..content_schema.scene_dsl import FACTION_MAX, FACTION_MIN


ENGINE_VERSION = 1


@dataclass
class SceneHistoryEntry:
    """One scene in the visit history. `visited_count` starts at 1."""
    scene_id: str
    timestamp: int
    visited_count: int = 1
    choice_label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "sceneId": self.scene_id,
            "timestamp": self.timestamp,
            "visitedCount": self.visited_count,
        }
        if self.choice_label is not None:
            data["choiceLabel"] = self.choice_label
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SceneHistoryEntry:
        if not isinstance(data, dict) or not isinstance(data.get("sceneId"), str):
            raise ValueError("history entry requires a string sceneId")
        visited = data.get("visitedCount", 1)
        if not isinstance(visited, int) or visited < 1:
            raise ValueError(f"history entry for {data['sceneId']} has invalid visitedCount")
        return cls(
            scene_id=data["sceneId"],
            timestamp=_timestamp(data.get("timestamp", 0), f"history entry for {data['sceneId']}"),
            visited_count=visited,
            choice_label=data.get("choiceLabel"),
        )


@dataclass
class GameState:
    """
    Complete play state at a point in time.

    stats: name -> number (missing reads as 0)
    flags: set of set flag names
    inventory: item id -> positive count (zero counts are removed)
    factions: faction id -> standing in [0, 10]
    """
    content_version: str
    current_scene_id: str = ""
    version: int = ENGINE_VERSION
    timestamp: int = 0

    history: list[SceneHistoryEntry] = field(default_factory=list)
    stats: dict[str, float] = field(default_factory=dict)
    flags: set[str] = field(default_factory=set)
    inventory: dict[str, int] = field(default_factory=dict)
    factions: dict[str, float] = field(default_factory=dict)

    random_seed: int | None = None

    def history_entry(self, scene_id: str) -> SceneHistoryEntry | None:
        for entry in self.history:
            if entry.scene_id == scene_id:
                return entry
        return None

    def visited_count(self, scene_id: str) -> int:
        entry = self.history_entry(scene_id)
        return entry.visited_count if entry else 0

    def progress_signature(self) -> str:
        """Flags, inventory and stats folded into one comparable string."""
        flags = ",".join(sorted(self.flags))
        items = ",".join(f"{k}:{v}" for k, v in sorted(self.inventory.items()))
        stats = ",".join(f"{k}:{v}" for k, v in sorted(self.stats.items()))
        return f"{flags}|{items}|{stats}"

    def clone(self) -> GameState:
        """Deep copy the state."""
        return deepcopy(self)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": self.version,
            "contentVersion": self.content_version,
            "timestamp": self.timestamp,
            "currentSceneId": self.current_scene_id,
            "history": [entry.to_dict() for entry in self.history],
            "stats": dict(self.stats),
            "flags": sorted(self.flags),
            "inventory": [[item, count] for item, count in self.inventory.items()],
            "factions": dict(self.factions),
        }
        if self.random_seed is not None:
            data["randomSeed"] = self.random_seed
        return data

    @classmethod
    def from_dict(cls, data: Any) -> GameState:
        """
        Rebuild state from a save blob.

        Raises ValueError on any structural problem.
        """
        if not isinstance(data, dict):
            raise ValueError("save data must be a JSON object")
        for key in ("version", "contentVersion", "currentSceneId"):
            if key not in data:
                raise ValueError(f"save data missing '{key}'")
        if not isinstance(data["version"], int):
            raise ValueError("save data 'version' must be an integer")
        if not isinstance(data["currentSceneId"], str) or not data["currentSceneId"]:
            raise ValueError("save data 'currentSceneId' must be a non-empty string")

        return cls(
            version=data["version"],
            content_version=str(data["contentVersion"]),
            timestamp=_timestamp(data.get("timestamp", 0), "save data"),
            current_scene_id=data["currentSceneId"],
            history=[SceneHistoryEntry.from_dict(e) for e in _list(data, "history")],
            stats=_numbers(data.get("stats") or {}, "stats"),
            flags=_flags(_list(data, "flags")),
            inventory=_inventory(data.get("inventory") or []),
            factions=_factions(data.get("factions") or {}),
            random_seed=data.get("randomSeed"),
        )


def _list(data: dict[str, Any], key: str) -> list:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise ValueError(f"save data '{key}' must be a list")
    return value


def _numbers(value: Any, key: str) -> dict[str, float]:
    if not isinstance(value, dict):
        raise ValueError(f"save data '{key}' must be an object")
    for name, number in value.items():
        if isinstance(number, bool) or not isinstance(number, (int, float)):
            raise ValueError(f"save data '{key}.{name}' must be a number")
    return dict(value)


def _inventory(value: Any) -> dict[str, int]:
    """Accept [[id, count], ..] entries, or a plain mapping."""
    if isinstance(value, dict):
        pairs = list(value.items())
    elif isinstance(value, list):
        pairs = []
        for entry in value:
            if not isinstance(entry, (list, tuple)) or len(entry) != 2:
                raise ValueError("save data 'inventory' entries must be [itemId, count] pairs")
            pairs.append((entry[0], entry[1]))
    else:
        raise ValueError("save data 'inventory' must be a list of pairs")

    inventory: dict[str, int] = {}
    for item, count in pairs:
        if not isinstance(item, str) or isinstance(count, bool) or not isinstance(count, int):
            raise ValueError(f"invalid inventory entry {item!r}: {count!r}")
        if count > 0:
            inventory[item] = count
    return inventory


def _timestamp(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{where} 'timestamp' must be a number")
    return int(value)


def _flags(values: list) -> set[str]:
    for flag in values:
        if not isinstance(flag, str):
            raise ValueError(f"save data 'flags' must hold strings, got {flag!r}")
    return set(values)


def _factions(value: Any) -> dict[str, float]:
    factions = _numbers(value, "factions")
    for name, standing in factions.items():
        if not FACTION_MIN <= standing <= FACTION_MAX:
            raise ValueError(
                f"save data 'factions.{name}' is {standing}, outside [{FACTION_MIN}, {FACTION_MAX}]"
            )
    return factions
