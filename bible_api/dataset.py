"""
Verse dataset

The static KJV verse table, loaded once at startup and shared read-only
by every request.
"""

import json
import os
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from bible_api.books import normalize_book_name
from bible_api.log import get_logger
from bible_api.models import Verse

logger = get_logger(__name__)

VerseKey = Tuple[str, int, int]


class VerseDataset:
    """Exact-match lookups over an ordered collection of verses"""

    def __init__(self, verses: Iterable[Verse] = ()):
        self._verses: List[Verse] = list(verses)
        self._by_key: Dict[VerseKey, Verse] = {}
        for verse in self._verses:
            # First occurrence wins, matching an in-order scan
            self._by_key.setdefault((verse.book, verse.chapter, verse.verse), verse)

    @classmethod
    def from_file(cls, path: str) -> "VerseDataset":
        """Load verses from a JSON file.

        Accepts either a list of verse objects or an object with a
        ``bibleData`` list. A missing or unreadable file yields an empty
        dataset so enrichment degrades to a pass-through.
        """
        if not os.path.exists(path):
            logger.warning(f"Bible data not found at {path}; verse text lookup disabled")
            return cls()

        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading bible data from {path}: {e}")
            return cls()

        if isinstance(raw, dict):
            raw = raw.get("bibleData")
        if not isinstance(raw, list):
            logger.error(f"Bible data at {path} has an invalid format")
            return cls()

        verses = []
        skipped = 0
        for row in raw:
            try:
                verses.append(Verse.model_validate(row))
            except PydanticValidationError:
                skipped += 1

        if skipped:
            logger.warning(f"Skipped {skipped} malformed verse rows in {path}")
        logger.info(f"Loaded {len(verses)} verses from {path}")
        return cls(verses)

    def __len__(self) -> int:
        return len(self._verses)

    def __bool__(self) -> bool:
        return bool(self._verses)

    def lookup(self, book: str, chapter: int, verse: int) -> Optional[Verse]:
        """Exact (book, chapter, verse) match"""
        return self._by_key.get((book, chapter, verse))

    def get_verse_by_reference(self, book: str, chapter, verse) -> Optional[Verse]:
        """Lookup that also accepts abbreviated book names and string numbers"""
        try:
            chapter, verse = int(chapter), int(verse)
        except (TypeError, ValueError):
            return None

        found = self.lookup(book, chapter, verse)
        if found is None:
            found = self.lookup(normalize_book_name(book), chapter, verse)
        return found
