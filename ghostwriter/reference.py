from __future__ import annotations

from pathlib import Path
from typing import Optional

try:
    from constants import REFERENCE_MAX_CHARS
    from logger_config import logger
except ImportError:
    from .constants import REFERENCE_MAX_CHARS
    from .logger_config import logger


class ReferenceLoader:
    """Reads the bounded prefix of the reference corpus.

    A missing or unreadable file yields an empty string; callers treat that
    as "reference unavailable". With ``cache=True`` the first non-empty slice
    is kept for the life of the process.
    """

    def __init__(self, path: Path, max_chars: int = REFERENCE_MAX_CHARS, cache: bool = False) -> None:
        self.path = Path(path)
        self.max_chars = max_chars
        self.cache = cache
        self._cached: Optional[str] = None

    @property
    def source_name(self) -> str:
        return self.path.name

    def load(self) -> str:
        if self._cached is not None:
            return self._cached
        try:
            with self.path.open("r", encoding="utf-8", errors="replace") as handle:
                text = handle.read(self.max_chars)
        except OSError as exc:
            logger.warning("Failed to read reference %s: %s", self.path, exc)
            return ""
        if self.cache and text:
            self._cached = text
        return text

    def clear_cache(self) -> None:
        self._cached = None
