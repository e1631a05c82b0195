"""Request/response schemas and the verse data model"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool

MISSING_TEXT_PLACEHOLDER = "[Verse text not available in database]"


class Verse(BaseModel):
    """One row of the static verse dataset"""

    book: str
    chapter: int
    verse: int
    text: str = ""


class VerseReference(BaseModel):
    """A search hit, keyed by (book, chapter, verse)"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    book: str
    chapter: int
    verse: int
    text: str = ""
    score: float = 0.0
    needs_text_lookup: bool = Field(default=False, alias="needsTextLookup")

    @property
    def key(self):
        return (self.book, self.chapter, self.verse)

    @property
    def citation(self) -> str:
        return f"{self.book} {self.chapter}:{self.verse}"

    @property
    def is_usable(self) -> bool:
        """True when the reference carries real verse text for prompting"""
        return bool(self.text and self.text.strip()) and not self.needs_text_lookup


class PromptMessage(BaseModel):
    role: Literal["system", "user"]
    content: str


# Request models
class BibleQueryRequest(BaseModel):
    query: Optional[str] = None
    stream: StrictBool = False


class PrayerRequest(BaseModel):
    prayerRequest: Optional[str] = None
    stream: StrictBool = False


# Response models
class QueryResponse(BaseModel):
    response: str
    references: List[VerseReference]


class PrayerResponse(BaseModel):
    prayer: str
    verseCount: int
    note: str


class FallbackPrayerResponse(BaseModel):
    prayer: str
    references: List[VerseReference]
    note: str
