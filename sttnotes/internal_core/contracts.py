from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SessionState = Literal["pending", "succeeded", "failed"]


class Track(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    track_name: str = Field(alias="trackName", min_length=1)
    objectives: List[str] = Field(min_length=1)

    @field_validator("objectives")
    @classmethod
    def _strip_objectives(cls, value: List[str]) -> List[str]:
        cleaned = [str(item).strip() for item in value if str(item).strip()]
        if not cleaned:
            raise ValueError("Track.objectives must contain at least one non-empty objective")
        return cleaned


class TranscriptSegment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    index: int = Field(ge=0)
    text: str


class TranscriptionResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    segments: List[TranscriptSegment] = Field(default_factory=list)
    billed_duration_sec: Optional[float] = None
    provider: str = ""

    @property
    def transcript(self) -> str:
        return "\n".join(segment.text for segment in self.segments)


class GeneratedNote(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    formattedConversation: str
    summary: str


class EmphasisRange(BaseModel):
    model_config = ConfigDict(extra="forbid")

    literal: str
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)


class ExportedDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document_id: str
    title: str
    url: str
    emphasis_ranges: List[EmphasisRange] = Field(default_factory=list)


class SessionRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    transcript: Optional[str] = None
    formattedConversation: Optional[str] = None
    summary: Optional[str] = None
    docUrl: Optional[str] = None
    billedDuration: Optional[float] = None
    status: SessionState = "pending"
    error: bool = False
    errorMessage: Optional[str] = None


class PipelineOutcome(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool
    session_id: str
    transcript: str = ""
    formatted_conversation: str = ""
    summary: str = ""
    doc_url: str = ""
    billed_duration_sec: Optional[float] = None
    message: str = ""


class GenerateTranscriptRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sessionId: str = Field(min_length=1, max_length=256)
    name: str = Field(min_length=1)
    tracks: List[Track] = Field(min_length=1)
    transcript: Optional[str] = None
    audioUrl: Optional[str] = None
    childId: Optional[str] = None
    nextSessionPlans: Optional[str] = None
    sessionNotes: Optional[str] = None

    @model_validator(mode="after")
    def _require_source(self) -> "GenerateTranscriptRequest":
        if not (self.transcript or "").strip() and not (self.audioUrl or "").strip():
            raise ValueError("Either transcript or audioUrl is required")
        return self
