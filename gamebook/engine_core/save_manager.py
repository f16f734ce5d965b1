"""
Save Manager - File-based save slots.

The save manager:
- Keeps three manual slots (1-3) plus an autosave slot (0)
- Stores one JSON file per slot under the save directory
- Wraps the state blob with format version, timestamp and content version
- Maps OS failures onto the closed SaveErrorKind taxonomy

File layout:
    <save_dir>/slot_<n>.json
    {"version": 1, "timestamp": ms, "contentVersion": "...", "gameState": {...}}
"""

from __future__ import annotations
import errno
import json
from contextlib import suppress
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import SaveError, SaveErrorKind
from .state import GameState

logger = logging.getLogger(__name__)


SAVE_FORMAT_VERSION = 1
MAX_SLOTS = 3
AUTOSAVE_SLOT = 0


@dataclass
class SaveSlotInfo:
    """Slot metadata for listings."""
    slot_id: int
    has_data: bool
    timestamp: int | None = None
    scene_id: str | None = None
    content_version: str | None = None
    version: int | None = None
    size_bytes: int = 0

    @property
    def is_autosave(self) -> bool:
        return self.slot_id == AUTOSAVE_SLOT


def classify_os_error(error: OSError) -> SaveErrorKind:
    """Map an OSError onto a SaveErrorKind."""
    if isinstance(error, PermissionError):
        return SaveErrorKind.PRIVACY_MODE
    if error.errno in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)):
        return SaveErrorKind.QUOTA_EXCEEDED
    if error.errno in (errno.EROFS, errno.ENOENT, errno.ENOTDIR, errno.EEXIST):
        return SaveErrorKind.STORAGE_UNAVAILABLE
    return SaveErrorKind.UNKNOWN


class SaveManager:
    """
    File-backed save slots.

    Usage:
        saves = SaveManager(save_dir="~/.gamebook/saves", content_version="1.2.0")

        saves.save(1, engine.get_state())
        state = saves.load(1)
        engine.load_state(state)
    """

    def __init__(
        self,
        save_dir: str | Path | None = None,
        content_version: str | None = None,
    ):
        if save_dir is None:
            save_dir = Path.home() / ".gamebook" / "saves"
        self.save_dir = Path(save_dir).expanduser()
        self.content_version = content_version

    def is_storage_available(self) -> bool:
        """Check the save directory can be created and written."""
        probe = self.save_dir / ".probe"
        try:
            self.save_dir.mkdir(parents=True, exist_ok=True)
            probe.write_text("ok", encoding="utf-8")
            probe.unlink()
        except OSError:
            return False
        return True

    def save(self, slot_id: int, state: GameState) -> SaveSlotInfo:
        """Write state to a slot, replacing any previous save."""
        self._validate_slot(slot_id)
        payload = {
            "version": SAVE_FORMAT_VERSION,
            "timestamp": int(time.time() * 1000),
            "contentVersion": state.content_version,
            "gameState": state.to_dict(),
        }
        path = self._slot_path(slot_id)
        tmp_path = path.with_suffix(".tmp")
        try:
            self.save_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            tmp_path.replace(path)
        except OSError as e:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise SaveError(
                classify_os_error(e),
                f"Failed to save slot {slot_id}: {e.strerror or e}",
                {"slot_id": slot_id, "path": str(path)},
            ) from e

        logger.debug("Saved slot %d at scene %s", slot_id, state.current_scene_id)
        return self.slot_info(slot_id)

    def autosave(self, state: GameState) -> SaveSlotInfo:
        return self.save(AUTOSAVE_SLOT, state)

    def load(self, slot_id: int) -> GameState:
        """Read a slot back into a GameState."""
        self._validate_slot(slot_id)
        data = self._read_slot(slot_id)
        if data is None:
            raise SaveError(SaveErrorKind.INVALID_DATA, f"No save data found in slot {slot_id}")

        payload = self._validate_payload(data, slot_id)
        if payload["version"] != SAVE_FORMAT_VERSION:
            raise SaveError(
                SaveErrorKind.VERSION_MISMATCH,
                f"Save format v{payload['version']} is not supported (expected v{SAVE_FORMAT_VERSION})",
                {"slot_id": slot_id},
            )
        if self.content_version and payload["contentVersion"] != self.content_version:
            raise SaveError(
                SaveErrorKind.VERSION_MISMATCH,
                f"Save was made with content v{payload['contentVersion']}, "
                f"current content is v{self.content_version}",
                {"slot_id": slot_id},
            )

        try:
            return GameState.from_dict(payload["gameState"])
        except ValueError as e:
            raise SaveError(SaveErrorKind.INVALID_DATA, f"Slot {slot_id}: {e}") from e

    def delete(self, slot_id: int):
        self._validate_slot(slot_id)
        try:
            self._slot_path(slot_id).unlink(missing_ok=True)
        except OSError as e:
            raise SaveError(classify_os_error(e), f"Failed to delete slot {slot_id}") from e

    def has_save(self, slot_id: int) -> bool:
        self._validate_slot(slot_id)
        return self._slot_path(slot_id).exists()

    def slot_info(self, slot_id: int) -> SaveSlotInfo:
        """Metadata for one slot. Unreadable slots report has_data=False."""
        self._validate_slot(slot_id)
        try:
            data = self._read_slot(slot_id)
            payload = self._validate_payload(data, slot_id) if data is not None else None
        except SaveError as e:
            logger.warning("Unreadable save slot %d: %s", slot_id, e.message)
            payload = None

        if payload is None:
            return SaveSlotInfo(slot_id=slot_id, has_data=False)

        return SaveSlotInfo(
            slot_id=slot_id,
            has_data=True,
            timestamp=payload["timestamp"],
            scene_id=payload["gameState"].get("currentSceneId"),
            content_version=payload["contentVersion"],
            version=payload["version"],
            size_bytes=self._slot_path(slot_id).stat().st_size,
        )

    def list_slots(self, include_autosave: bool = False) -> list[SaveSlotInfo]:
        first = AUTOSAVE_SLOT if include_autosave else 1
        return [self.slot_info(slot_id) for slot_id in range(first, MAX_SLOTS + 1)]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _validate_slot(self, slot_id: int):
        if not isinstance(slot_id, int) or not AUTOSAVE_SLOT <= slot_id <= MAX_SLOTS:
            raise ValueError(f"Invalid slot ID: {slot_id}. Must be 1-{MAX_SLOTS} (0 for autosave).")

    def _slot_path(self, slot_id: int) -> Path:
        return self.save_dir / f"slot_{slot_id}.json"

    def _read_slot(self, slot_id: int) -> Any:
        path = self._slot_path(slot_id)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise SaveError(
                SaveErrorKind.INVALID_DATA,
                f"Slot {slot_id} is not valid JSON",
                {"slot_id": slot_id},
            ) from e
        except OSError as e:
            raise SaveError(classify_os_error(e), f"Failed to read slot {slot_id}") from e

    def _validate_payload(self, data: Any, slot_id: int) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise SaveError(SaveErrorKind.INVALID_DATA, f"Slot {slot_id}: save data is not an object")
        checks = (
            ("version", int, "missing version field"),
            ("timestamp", (int, float), "missing timestamp"),
            ("contentVersion", str, "missing contentVersion"),
            ("gameState", dict, "missing gameState"),
        )
        for key, expected, message in checks:
            if not isinstance(data.get(key), expected):
                raise SaveError(SaveErrorKind.INVALID_DATA, f"Slot {slot_id}: save data {message}")
        return data
