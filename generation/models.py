"""
Generation Models - Drafts produced by the model and token accounting

QuizDraft/QuestionDraft/OptionDraft mirror the JSON shape the prompt asks for.
They forbid unknown fields so a schema mismatch fails decoding instead of being
silently ignored. Structural rules (4 options, one correct) are enforced by the
assembler and the persistence writer, not here, so a single bad question never
invalidates an otherwise usable payload.
"""

from dataclasses import dataclass
from typing import List

from pydantic import BaseModel, ConfigDict


class OptionDraft(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str = ""
    is_correct: bool = False
    explanation: str = ""


class QuestionDraft(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str = ""
    topic: str = ""
    options: List[OptionDraft] = []

    def correct_count(self) -> int:
        return sum(1 for option in self.options if option.is_correct)


class QuizDraft(BaseModel):
    """In-memory, unpersisted quiz produced by one generation or a merge"""

    model_config = ConfigDict(extra="forbid")

    title: str = ""
    questions: List[QuestionDraft] = []

    def limited(self, max_questions: int) -> "QuizDraft":
        """Return a copy truncated to max_questions (no resampling)"""
        if len(self.questions) <= max_questions:
            return self
        return QuizDraft(title=self.title, questions=self.questions[:max_questions])


@dataclass(frozen=True)
class TokenUsage:
    """Billing counters reported by the model, additive across attempts and batches"""

    prompt_tokens: int = 0
    candidate_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            candidate_tokens=self.candidate_tokens + other.candidate_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @classmethod
    def sum(cls, usages) -> "TokenUsage":
        total = cls()
        for usage in usages:
            total = total + usage
        return total

    def is_empty(self) -> bool:
        return self.total_tokens == 0 and self.prompt_tokens == 0 and self.candidate_tokens == 0
