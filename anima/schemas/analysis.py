"""
Analysis request / response schemas and the validated AI result.

POST /analyze  → AnalyzeRequest → AnalyzeResponse

AnalysisResult is the boundary type for the AI collaborator: every field
of the model's JSON is treated as untrusted and coerced here, before
anything reaches the ledger.
"""
from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from anima.models.entry import VISUAL_MOOD_MAX_LENGTH, EntryKind
from anima.models.symbol import SymbolCategory

# Images arrive as base64 data URIs, roughly 4/3 of the file size.
TEXT_MAX_LENGTH = 20_000
IMAGE_MAX_LENGTH = 14_000_000


def _as_text(v: Any) -> str:
    if v is None:
        return ""
    return v.strip() if isinstance(v, str) else str(v)


# ---------------------------------------------------------------------------
# AI collaborator result
# ---------------------------------------------------------------------------

class SymbolDetail(BaseModel):
    """Optional per-symbol hints the model may return alongside the symbol list."""
    model_config = ConfigDict(extra="ignore")

    name: str
    category: Optional[SymbolCategory] = None
    meaning: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v: Any) -> Optional[str]:
        """Unknown categories become None instead of failing the whole analysis."""
        if not isinstance(v, str):
            return None
        upper = v.strip().upper()
        return upper if upper in SymbolCategory.__members__ else None

    @field_validator("meaning", mode="before")
    @classmethod
    def coerce_meaning(cls, v: Any) -> Optional[str]:
        text = _as_text(v)
        return text or None


class AnalysisResult(BaseModel):
    """
    Validated and coerced output of the AI collaborator.

    Accepts camelCase variants the model sometimes emits
    (detectedSymbols, dominantArchetype, interpretation, question).
    `raw` keeps the verbatim payload for the entry record.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    analysis_log: str = Field(
        default="",
        validation_alias=AliasChoices("analysis_log", "analysisLog", "interpretation"),
    )
    detected_symbols: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("detected_symbols", "detectedSymbols", "symbols"),
    )
    dominant_archetype: str = Field(
        default="",
        validation_alias=AliasChoices("dominant_archetype", "dominantArchetype", "archetype"),
    )
    reflection_question: str = Field(
        default="",
        validation_alias=AliasChoices("reflection_question", "reflectionQuestion", "question"),
    )
    visual_mood: str = Field(
        default="",
        validation_alias=AliasChoices("visual_mood", "visualMood", "mood"),
    )
    symbol_details: list[SymbolDetail] = Field(
        default_factory=list,
        validation_alias=AliasChoices("symbol_details", "symbolDetails"),
    )
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @field_validator(
        "analysis_log", "dominant_archetype", "reflection_question", mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("visual_mood", mode="before")
    @classmethod
    def coerce_mood(cls, v: Any) -> str:
        """A short palette label; anything longer is cut to fit the column."""
        return _as_text(v)[:VISUAL_MOOD_MAX_LENGTH].rstrip()

    @field_validator("detected_symbols", mode="before")
    @classmethod
    def coerce_symbols(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, (list, tuple)):
            return []
        return [_as_text(s) for s in v if _as_text(s)]

    @field_validator("symbol_details", mode="before")
    @classmethod
    def drop_bad_details(cls, v: Any) -> list[dict]:
        if not isinstance(v, list):
            return []
        return [
            d for d in v
            if isinstance(d, dict) and isinstance(d.get("name"), str) and d["name"].strip()
        ]

    @classmethod
    def from_collaborator(cls, payload: dict[str, Any]) -> "AnalysisResult":
        result = cls.model_validate(payload)
        result.raw = dict(payload)
        return result


# ---------------------------------------------------------------------------
# HTTP schemas
# ---------------------------------------------------------------------------

class AnalyzeRequest(BaseModel):
    """A journal submission: dream text, or a reference to an uploaded image."""
    model_config = ConfigDict(use_enum_values=True)

    type: EntryKind = Field(
        description='"text" for written entries, "image" for an image reference.',
        examples=["text"],
    )
    content: Annotated[str, Field(
        min_length=1,
        description="Entry text, or the image URL / data URI for image entries.",
        examples=["Śniło mi się, że koty piły wodę z rzeki pod mostem."],
    )]

    @field_validator("content", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("content must not be empty after stripping whitespace")
        return stripped

    @model_validator(mode="after")
    def check_length_for_type(self) -> "AnalyzeRequest":
        limit = IMAGE_MAX_LENGTH if self.type == EntryKind.image.value else TEXT_MAX_LENGTH
        if len(self.content) > limit:
            raise ValueError(f"{self.type} content must be at most {limit} characters")
        return self


class SymbolDetailOut(BaseModel):
    name: str
    category: Optional[str] = None
    meaning: Optional[str] = None


class AnalyzeResponse(BaseModel):
    """The analysis as returned to the client, with the archetype normalized."""
    entry_id: int = Field(description="ID of the persisted entry.")
    analysis_log: str
    detected_symbols: list[str] = Field(
        description="Symbols as detected by the model (raw labels).",
    )
    normalized_symbols: list[str] = Field(
        description="Canonical symbol keys stored on the entry.",
    )
    dominant_archetype: Optional[str] = Field(
        default=None,
        description="Canonical archetype, or null when unrecognized.",
    )
    reflection_question: str
    visual_mood: str
    symbol_details: list[SymbolDetailOut] = Field(default_factory=list)
