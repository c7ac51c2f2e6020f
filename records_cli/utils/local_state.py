import json
import os
from pathlib import Path
from typing import Dict, Optional

STATE_FILE_NAME = "state.json"


class LocalState:
    """Small string key/value store kept in a JSON file between runs."""

    def __init__(self, state_dir: Optional[str] = None):
        self.state_dir = Path(state_dir or os.getenv("RECORDS_STATE_DIR", ".records"))
        self.path = self.state_dir / STATE_FILE_NAME

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: Optional[str]) -> None:
        """Store ``value`` under ``key``; None removes the key. Written before returning."""
        data = self._read()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value

        self.state_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
