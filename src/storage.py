# storage.py
# Key-value persistence for the best score and the saved session.

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from core import InvalidFormatError

logger = logging.getLogger(__name__)

BEST_SCORE_KEY = "bestScore"
GAME_STATE_KEY = "gameState"


class Storage:
    """
    Durable key-value store used by the game manager.
    Subclasses must override get_item, set_item and remove_item; absence of a key is not an error.
    """

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def get_best_score(self) -> int:
        raw = self.get_item(BEST_SCORE_KEY)
        try:
            return int(raw) if raw is not None else 0
        except (TypeError, ValueError):
            logger.warning("Ignoring unreadable best score %r", raw)
            return 0

    def set_best_score(self, score: int) -> None:
        self.set_item(BEST_SCORE_KEY, str(score))

    def get_session_state(self) -> Optional[Dict[str, Any]]:
        """
        Returns the saved session record, or None if there is none.
        Raises:
            InvalidFormatError: If the stored record is not a JSON string.
        """
        state_json = self.get_item(GAME_STATE_KEY)
        if state_json is None:
            return None
        if not isinstance(state_json, str):
            raise InvalidFormatError(f"Saved session must be a JSON string, got {type(state_json).__name__}.")
        if not state_json:
            return None
        try:
            return json.loads(state_json)
        except json.JSONDecodeError as e:
            raise InvalidFormatError(f"Saved session is not valid JSON: {e}") from e

    def set_session_state(self, state: Dict[str, Any]) -> None:
        self.set_item(GAME_STATE_KEY, json.dumps(state))

    def clear_session_state(self) -> None:
        self.remove_item(GAME_STATE_KEY)


class InMemoryStorage(Storage):
    """Stand-in used when no durable backend is available. Nothing survives the process."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data = {}


class FileStorage(Storage):
    """Stores every key in a single JSON document on disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Storage file %s is corrupt; starting from an empty store", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data), encoding="utf-8")
        tmp_path.replace(self.path)

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = str(value)
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    def is_supported(self) -> bool:
        """Checks the backend by writing and removing a throwaway key."""
        test_key = "test"
        try:
            self.set_item(test_key, "1")
            self.remove_item(test_key)
            return True
        except OSError as e:
            logger.warning("File storage at %s is unavailable: %s", self.path, e)
            return False


def select_storage(path: Optional[Union[str, Path]]) -> Storage:
    """
    Picks the durable file store when it works, the in-memory stand-in otherwise.
    Args:
        path (Optional[Union[str, Path]]): Location of the JSON store; None disables persistence.
    Returns:
        Storage: The backend to inject into the game manager.
    """
    if path is not None:
        file_storage = FileStorage(path)
        if file_storage.is_supported():
            return file_storage
    logger.info("Session persistence disabled; using in-memory storage")
    return InMemoryStorage()
