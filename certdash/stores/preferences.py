"""
UI preferences persisted between runs.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from ..models import Theme, UIPreferences

logger = logging.getLogger(__name__)


class PreferencesStore:
    """Theme and sidebar state kept in a JSON file. List data is never written here."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.preferences = self.load()

    def load(self) -> UIPreferences:
        if not self.path.exists():
            return UIPreferences()
        try:
            return UIPreferences(**json.loads(self.path.read_text(encoding='utf-8')))
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable preferences in {self.path}: {e}")
            return UIPreferences()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self.preferences.model_dump_json(), encoding='utf-8')

    def update(self, **changes) -> UIPreferences:
        self.preferences = UIPreferences(**{**self.preferences.model_dump(), **changes})
        self.save()
        return self.preferences

    def set_theme(self, theme: Theme) -> UIPreferences:
        return self.update(theme=Theme(theme))

    def toggle_sidebar(self) -> UIPreferences:
        return self.update(sidebar_open=not self.preferences.sidebar_open)
