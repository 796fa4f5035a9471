# i18n.py
"""
Translation lookup.

Catalogs live in ``locales/<lang>.json`` as nested objects addressed by dotted
keys (``castleExercise.progress``). Strings may carry ``{name}`` placeholders.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from storage import KeyValueStorage, StorageError

DEFAULT_LANGUAGE = "en"
LANGUAGE_STORAGE_KEY = "mathworld.language"
LOCALES_DIR = Path(os.getenv("LOCALES_DIR") or Path(__file__).resolve().parent / "locales")

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")

logger = logging.getLogger("castle-exercise.i18n")


def get_nested(obj: Any, path: str) -> Any:
    current = obj
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def replace_placeholders(text: str, variables: Optional[Mapping[str, Any]] = None) -> str:
    if not variables:
        return text
    return _PLACEHOLDER_RE.sub(
        lambda m: str(variables[m.group(1)]) if m.group(1) in variables else m.group(0), text
    )


def normalize_language(code: Optional[str]) -> Optional[str]:
    """``"sv-SE"`` -> ``"sv"``; ``"sv-SE,sv;q=0.9"`` -> ``"sv"``."""
    if not code:
        return None
    first = code.split(",")[0].split(";")[0].strip()
    primary = first.split("-")[0].split("_")[0].lower()
    return primary or None


def available_languages(locales_dir: Path = LOCALES_DIR) -> List[str]:
    if not locales_dir.is_dir():
        return []
    return sorted(p.stem for p in locales_dir.glob("*.json"))


def resolve_language(
    saved: Optional[str] = None,
    query: Optional[str] = None,
    accept_language: Optional[str] = None,
    supported: Optional[List[str]] = None,
) -> str:
    """
    Pick the display language: saved preference, then ``?lang=``, then the
    browser locale, then the default. Only the first source present counts.
    """
    supported = available_languages() if supported is None else supported
    for source in (saved, query, accept_language):
        lang = normalize_language(source)
        if lang is None:
            continue
        if lang in supported:
            return lang
        logger.warning("Language '%s' not found, falling back to '%s'", lang, DEFAULT_LANGUAGE)
        return DEFAULT_LANGUAGE
    return DEFAULT_LANGUAGE


def load_language_preference(storage: KeyValueStorage) -> Optional[str]:
    try:
        return storage.get_item(LANGUAGE_STORAGE_KEY)
    except StorageError as e:
        logger.error("Failed to load language preference: %s", e)
        return None


def save_language_preference(storage: KeyValueStorage, language: str) -> bool:
    try:
        storage.set_item(LANGUAGE_STORAGE_KEY, language)
    except StorageError as e:
        logger.error("Failed to save language preference: %s", e)
        return False
    return True


class Translator:
    def __init__(self, locales_dir: Path = LOCALES_DIR):
        self.locales_dir = Path(locales_dir)
        self._catalogs: Dict[str, Dict[str, Any]] = {}

    def languages(self) -> List[str]:
        return available_languages(self.locales_dir)

    def load(self, language: str = DEFAULT_LANGUAGE) -> Dict[str, Any]:
        """Load (and cache) a catalog, falling back to the default language."""
        if language in self._catalogs:
            return self._catalogs[language]

        path = self.locales_dir / f"{language}.json"
        try:
            with path.open("r", encoding="utf-8") as f:
                catalog = json.load(f)
            if not isinstance(catalog, dict):
                raise ValueError("catalog root must be an object")
        except (OSError, ValueError) as e:
            if language != DEFAULT_LANGUAGE:
                logger.warning(
                    "Language '%s' not found, falling back to '%s'", language, DEFAULT_LANGUAGE
                )
                catalog = self.load(DEFAULT_LANGUAGE)
            else:
                # Lookups will fall back to their default strings
                logger.error("Error loading translations for '%s': %s", language, e)
                catalog = {}

        self._catalogs[language] = catalog
        return catalog

    async def ready(self, language: str = DEFAULT_LANGUAGE) -> None:
        """Make sure ``language`` is loaded before the first render."""
        if language not in self._catalogs:
            await asyncio.to_thread(self.load, language)

    def translate(
        self,
        key: str,
        variables: Optional[Mapping[str, Any]] = None,
        default: Optional[str] = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> str:
        value = get_nested(self.load(language), key)
        if not isinstance(value, str):
            logger.warning("Translation key not found: %s", key)
            value = default if default is not None else key
        return replace_placeholders(value, variables)

    def reload(self) -> int:
        self._catalogs.clear()
        return len(self.languages())
