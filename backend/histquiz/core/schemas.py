from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator
from typing import List, Optional

# ------------------------------------------------------------
# Request models
# ------------------------------------------------------------
class GenerationRequest(BaseModel):
    prompt: StrictStr              # full instruction text built by the client

    @field_validator("prompt")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("prompt must not be blank")
        return v


# ------------------------------------------------------------
# Quiz & Response models
# ------------------------------------------------------------
class QuizPayload(BaseModel):
    """One generated quiz. Field aliases are the JSON keys the model emits."""

    model_config = ConfigDict(populate_by_name=True)

    leading_sentence: str = Field("", alias="Leading Sentence")
    questions: List[str] = Field(default_factory=list, alias="Questions")
    answers: List[str] = Field(default_factory=list, alias="Answers")
    different_answers: Optional[List[str]] = None
    explanation: str = Field("", alias="Explaination")   # key is spelled this way upstream
    theme: str = Field("", alias="Theme")


class ErrorResponse(BaseModel):
    error: str
