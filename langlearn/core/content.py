"""
Lesson content payloads.

Every piece of lesson content is a tagged variant keyed by ``kind``:

- text:  {"kind": "text", "text": ...}
- image: {"kind": "image", "url": ..., "caption": ...}
- video: {"kind": "video", "url": ...}
- audio: {"kind": "audio", "url": ...}
- quiz:  {"kind": "quiz", "questions": [...], "difficulty": 0.5}

Payloads are validated once, where they enter the engine (content cache,
quiz template reads). Older rows use ``type`` instead of ``kind`` and
camelCase keys; both spellings are accepted.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)


class ContentValidationError(ValueError):
    """Raised when a content payload fails boundary validation."""


class QuestionType(str, Enum):
    """Declared question kind; drives hint generation."""

    GRAMMAR = "grammar"
    VOCABULARY = "vocabulary"
    GENERAL = "general"


class QuizQuestion(BaseModel):
    """A single multiple-choice question (also used as a quiz template)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    question: str = ""
    options: list[str] = Field(default_factory=list)
    correct_answer: int | None = Field(
        default=None, validation_alias=AliasChoices("correct_answer", "correctAnswer")
    )
    difficulty: float | None = Field(default=None, ge=0, le=1)
    question_type: QuestionType = Field(
        default=QuestionType.GENERAL,
        validation_alias=AliasChoices("question_type", "type"),
    )
    grammar_point: str | None = Field(
        default=None, validation_alias=AliasChoices("grammar_point", "grammarPoint")
    )
    context: str | None = None
    topic: str | None = None
    hint: str | None = None

    @field_validator("question_type", mode="before")
    @classmethod
    def _unknown_types_are_general(cls, value: Any) -> Any:
        if isinstance(value, QuestionType):
            return value
        try:
            return QuestionType(str(value).lower())
        except ValueError:
            return QuestionType.GENERAL

    @field_validator("options", mode="before")
    @classmethod
    def _options_as_strings(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return value


class _ContentBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TextContent(_ContentBase):
    kind: Literal["text"] = "text"
    text: str


class ImageContent(_ContentBase):
    kind: Literal["image"] = "image"
    url: str
    caption: str | None = None


class VideoContent(_ContentBase):
    kind: Literal["video"] = "video"
    url: str


class AudioContent(_ContentBase):
    kind: Literal["audio"] = "audio"
    url: str


class QuizContent(_ContentBase):
    """
    A quiz block.

    ``difficulty`` applies to questions that do not declare their own;
    the legacy single-question template shape (options at the top level)
    is folded into a one-question list.
    """

    kind: Literal["quiz"] = "quiz"
    questions: list[QuizQuestion] = Field(default_factory=list)
    difficulty: float = Field(default=0.5, ge=0, le=1)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _missing_difficulty_is_default(cls, value: Any) -> Any:
        return 0.5 if value is None else value

    def templates(self) -> list[QuizQuestion]:
        """Questions with their effective difficulty filled in."""
        return [
            q if q.difficulty is not None else q.model_copy(update={"difficulty": self.difficulty})
            for q in self.questions
        ]


ContentPayload = Annotated[
    Union[TextContent, ImageContent, VideoContent, AudioContent, QuizContent],
    Field(discriminator="kind"),
]

_payload_adapter: TypeAdapter[Any] = TypeAdapter(ContentPayload)

_QUESTION_KEYS = ("question", "options", "correctAnswer", "correct_answer")


def _normalize(raw: dict[str, Any]) -> dict[str, Any]:
    data = dict(raw)
    if "kind" not in data and "type" in data:
        data["kind"] = data.pop("type")

    # module_contents rows wrap the body in "content"
    body = data.get("content")
    if isinstance(body, dict) and not any(k in data for k in ("text", "url", "questions")):
        merged = {k: v for k, v in data.items() if k != "content"}
        merged.update(body)
        data = merged

    if data.get("kind") == "quiz" and "questions" not in data and any(k in data for k in _QUESTION_KEYS):
        question = {k: v for k, v in data.items() if k not in ("kind", "difficulty")}
        data = {
            "kind": "quiz",
            "difficulty": data.get("difficulty"),
            "questions": [question],
        }
    return data


def parse_content(raw: Any) -> TextContent | ImageContent | VideoContent | AudioContent | QuizContent:
    """
    Validate a raw payload into its tagged variant.

    Raises:
        ContentValidationError: unknown kind, missing fields, or not a mapping
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if not isinstance(raw, dict):
        raise ContentValidationError(f"Content payload must be an object, got {type(raw).__name__}")
    try:
        return _payload_adapter.validate_python(_normalize(raw))
    except ValidationError as e:
        raise ContentValidationError(str(e)) from e


def dump_content(payload: BaseModel) -> dict[str, Any]:
    """JSON-safe dict for persistence."""
    return payload.model_dump(mode="json", exclude_none=True)
