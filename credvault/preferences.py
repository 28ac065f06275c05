import os
import json
import logging
from typing import Any, Dict, Optional

from . import config
from .utils import get_config_dir, set_owner_only_permissions

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "theme": config.THEME_LIGHT,
    "last_email": "",
}


class Preferences:
    """
    User preferences persisted as JSON in the config directory.
    A missing or unreadable file yields the defaults.
    """

    def __init__(self, filepath: Optional[str] = None):
        self.filepath = filepath or os.path.join(get_config_dir(), config.PREFERENCES_FILE)
        self._data = dict(DEFAULTS)
        self.load()

    def load(self) -> None:
        self._data = dict(DEFAULTS)
        if not os.path.exists(self.filepath):
            return
        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                stored = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.filepath}: {e}")
            return
        if isinstance(stored, dict):
            self._data.update({k: v for k, v in stored.items() if k in DEFAULTS})

    def get(self, key: str) -> Any:
        return self._data.get(key, DEFAULTS.get(key))

    def set(self, key: str, value: Any) -> None:
        if key not in DEFAULTS:
            raise KeyError(f"Unknown preference: {key}")
        self._data[key] = value
        self.save()

    def save(self) -> None:
        os.makedirs(os.path.dirname(self.filepath), exist_ok=True)
        tmp_path = self.filepath + '.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(self._data, f, indent=2)
        os.replace(tmp_path, self.filepath)
        set_owner_only_permissions(self.filepath)
