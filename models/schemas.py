"""Pydantic models for the interview orchestrator API and LLM payloads."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "ja", "es", "fr", "de", "zh", "it", "rm", "gsw")

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "ja": "Japanese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "zh": "Simplified Chinese",
    "it": "Italian",
    "rm": "Romansh",
    "gsw": "Swiss German",
}

Role = Literal["system", "user", "assistant"]
QuestionType = Literal["text", "single_choice", "multi_choice", "scale"]
SessionStatus = Literal["active", "extended", "completed"]
AggregationStatus = Literal["processing", "completed", "failed"]


# --- LLM payloads ---


class ChatMessage(BaseModel):
    """One message of a provider conversation."""

    role: Role
    content: str


class QuestionMetadata(BaseModel):
    """Canonical answer shape of an assistant turn."""

    model_config = ConfigDict(populate_by_name=True)

    type: QuestionType = "text"
    options: list[str] | None = None
    scale_min: int | float | None = Field(default=None, alias="scaleMin")
    scale_max: int | float | None = Field(default=None, alias="scaleMax")
    scale_min_label: str | None = Field(default=None, alias="scaleMinLabel")
    scale_max_label: str | None = Field(default=None, alias="scaleMaxLabel")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ResponseMetadata(BaseModel):
    """How the participant answered: free text, chosen option(s) or a scale value."""

    model_config = ConfigDict(populate_by_name=True)

    type: QuestionType = "text"
    selected_options: list[str] | None = Field(default=None, alias="selectedOptions")
    scale_value: int | float | None = Field(default=None, alias="scaleValue")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class NormalizedQuestion(BaseModel):
    """Question text plus its canonical metadata, as stored for an assistant turn."""

    question: str
    metadata: QuestionMetadata = Field(default_factory=QuestionMetadata)


def _as_text_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return [str(value)]
    items = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("text") or item.get("label") or item.get("title") or ""
        text = str(item).strip()
        if text:
            items.append(text)
    return items


class AnalysisResult(BaseModel):
    """Structured executive analysis of one template's interviews."""

    executive_summary: str = ""
    key_findings: list[str] = Field(default_factory=list)
    segment_analysis: str = ""
    recommended_actions: list[str] = Field(default_factory=list)

    @field_validator("executive_summary", "segment_analysis", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return "\n\n".join(_as_text_list(value))
        return str(value)

    @field_validator("key_findings", "recommended_actions", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> list[str]:
        return _as_text_list(value)

    @classmethod
    def empty(cls) -> "AnalysisResult":
        return cls()


class TemplateTranslation(BaseModel):
    """Localized title, prompt and overview of a template."""

    title: str
    prompt: str
    overview: str


# --- API request/response models ---


class SessionStartRequest(BaseModel):
    template_id: str
    language: str = "en"


class SessionInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    template_id: str
    language: str
    status: SessionStatus
    started_at: datetime
    ended_at: datetime | None = None
    summary: str | None = None


class SessionStatusUpdate(BaseModel):
    status: Literal["extended", "completed"] = "completed"


class InitResponse(BaseModel):
    """Greeting plus the localized template header shown on the chat screen."""

    message: str
    title: str
    duration: int


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    metadata: ResponseMetadata | None = None


class ChatResponse(BaseModel):
    message: str
    metadata: dict[str, Any]


class TurnInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    role: Role
    content: str
    metadata: dict[str, Any] | None = None
    timestamp: datetime


class TemplateRequest(BaseModel):
    title: str = Field(min_length=1)
    prompt: str = Field(min_length=1)
    duration: int = Field(default=600, ge=60, multiple_of=60)


class TemplateInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    prompt: str
    overview: str | None = None
    duration: int
    translations: dict[str, TemplateTranslation] = Field(default_factory=dict)
    created_at: datetime

    @field_validator("translations", mode="before")
    @classmethod
    def _default_translations(cls, value: Any) -> Any:
        return value or {}


class AggregationInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    llm_model: str
    total_sessions: int
    status: AggregationStatus


class ReportDetailInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    template_id: str
    template_title: str
    language: str
    total_interviews: int
    completed_interviews: int
    in_progress_interviews: int
    total_messages: int
    avg_duration: str | None = None
    avg_duration_seconds: int | None = None
    last_conducted_at: datetime | None = None
    executive_summary: str = ""
    key_findings: list[str] = Field(default_factory=list)
    segment_analysis: str = ""
    recommended_actions: list[str] = Field(default_factory=list)

    @field_validator("executive_summary", "segment_analysis", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return value or ""

    @field_validator("key_findings", "recommended_actions", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return value or []


class AggregationReport(BaseModel):
    aggregation: AggregationInfo
    details: list[ReportDetailInfo]
    language: str


class RunAggregationResponse(BaseModel):
    aggregation_id: str
    message: str = "Report aggregation completed successfully"


class SummaryResponse(BaseModel):
    summary: str


class SettingsResponse(BaseModel):
    """Current provider configuration (secrets reported as set/unset only)."""

    llm_provider: str
    model_name: str
    openai_api_key_set: bool
    local_llm_base_url: str
    aws_region: str
    aws_credentials_set: bool
    aws_bearer_token_set: bool
    source_language: str
    supported_languages: list[str]
