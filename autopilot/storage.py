"""Preference store and session files.

Both write atomically: content goes to a temporary file in the target
directory which then replaces the target, so an interrupted write leaves the
previous content in place.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from autopilot.exceptions import SessionLoadError
from autopilot.messages import SessionData

logger = logging.getLogger(__name__)


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class PreferenceStore:
    """Process-wide string key/value slots."""

    def get_string(self, key: str, default: str = "") -> str:
        raise NotImplementedError

    def set_string(self, key: str, value: str) -> None:
        raise NotImplementedError


class MemoryPreferenceStore(PreferenceStore):
    """Preferences kept in memory; lost with the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    def get_string(self, key: str, default: str = "") -> str:
        return self._values.get(key, default)

    def set_string(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonPreferenceStore(PreferenceStore):
    """Preferences persisted as one JSON object, rewritten on every set."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._values: dict[str, str] = self._read()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed preferences file %s", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get_string(self, key: str, default: str = "") -> str:
        return self._values.get(key, default)

    def set_string(self, key: str, value: str) -> None:
        self._values[key] = value
        _atomic_write(self.path, json.dumps(self._values, indent=2))


class SessionStore:
    """Directory of ``<session_id>.json`` files, one per session."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    def exists(self, session_id: str) -> bool:
        return self.path_for(session_id).exists()

    def create(self, session_id: str) -> Path:
        """Create an empty file for a new session."""
        path = self.path_for(session_id)
        path.touch()
        return path

    def save(self, session_data: SessionData) -> Path:
        """Overwrite the session's file with its full history."""
        path = self.path_for(session_data.session_id)
        _atomic_write(path, session_data.model_dump_json(indent=2, exclude_none=True))
        return path

    def load(self, path: Union[str, Path]) -> SessionData:
        """Read a session file.

        Raises:
            SessionLoadError: If the file cannot be read or is not a session.
        """
        path = Path(path)
        try:
            return SessionData.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise SessionLoadError(f"Cannot load session file {path}: {e}") from e

    def list_sessions(self) -> list[str]:
        """Session ids present in the directory, most recently written first."""
        files = sorted(
            self.directory.glob("*.json"), key=lambda p: p.stat().st_mtime, reverse=True
        )
        return [f.stem for f in files]
