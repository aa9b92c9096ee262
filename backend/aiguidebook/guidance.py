"""
AI Guidebook - Guidance Content

Institution-configurable help text (tooltips, hints, help sections) read from
a JSON document at GUIDANCE_PATH. Admins can change the file without a code
deployment. The loaded content lives on the GuidanceConfig instance owned by
the application, and is read on first access only.
"""
import json
import logging
import os
import threading
from copy import deepcopy
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

GUIDANCE_PATH = os.getenv("GUIDANCE_PATH", "./guidance.json")

DEFAULT_GUIDANCE: Dict[str, Any] = {
    "institution": "",
    "tooltips": {},
    "hints": {},
    "help_section": {"title": "Help", "sections": []},
}


class GuidanceConfig:
    """Lazily-loaded guidance document. Falls back to defaults on any read problem."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or GUIDANCE_PATH
        self._content: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._content is not None

    def content(self) -> Dict[str, Any]:
        with self._lock:
            if self._content is None:
                self._content = self._load()
            return self._content

    def tooltip(self, key: str) -> str:
        return self.content()["tooltips"].get(key, "")

    def hint(self, key: str) -> str:
        return self.content()["hints"].get(key, "")

    def _load(self) -> Dict[str, Any]:
        content = deepcopy(DEFAULT_GUIDANCE)
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning(f"Guidance file not found at {self.path}; using defaults")
            return content
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read guidance file {self.path}: {e}; using defaults")
            return content

        if not isinstance(data, dict):
            logger.warning(f"Guidance file {self.path} is not a JSON object; using defaults")
            return content

        # The original client format spells this key in camelCase
        if "helpSection" in data and "help_section" not in data:
            data["help_section"] = data.pop("helpSection")

        for key in content:
            if key in data:
                content[key] = data[key]
        logger.info(f"Loaded guidance content from {self.path}")
        return content
