"""
Quiz Assembler - Validate and merge per-batch results into one quiz

Merge rules:
- Structurally invalid questions (empty text, not exactly 4 options) are
  dropped and logged, never fatal
- Each batch is truncated to per_batch_cap before merging
- Surviving questions are concatenated, shuffled, then truncated to total_cap
- Title: first nonempty batch title, else a date-based title
- Any batch error fails the whole merge (no partial quiz)
- Zero surviving questions fails with NoQuestionsError

Correct-answer count is not checked here; the persistence writer enforces it.
"""

import datetime
import random
from typing import List, Optional, Sequence, Union

from config import get_logger
from exceptions import BatchMergeError, NoQuestionsError
from generation.models import QuestionDraft, QuizDraft, TokenUsage

logger = get_logger(__name__).bind(component="assembler")

REQUIRED_OPTIONS = 4

BatchResult = Union[QuizDraft, BaseException]


def is_structurally_valid(question: QuestionDraft) -> bool:
    return bool(question.text.strip()) and len(question.options) == REQUIRED_OPTIONS


def filter_valid_questions(questions: Sequence[QuestionDraft]) -> List[QuestionDraft]:
    """Drop questions with empty text or the wrong number of options"""
    valid = []
    for question in questions:
        if is_structurally_valid(question):
            valid.append(question)
        else:
            logger.warning(
                "dropping invalid question",
                question_preview=question.text[:80],
                option_count=len(question.options)
            )
    return valid


def default_title(today: Optional[datetime.date] = None) -> str:
    """Title used when no batch produced one, e.g. 'Quiz Generated on October 18, 2026'"""
    today = today or datetime.date.today()
    return f"Quiz Generated on {today.strftime('%B')} {today.day}, {today.year}"


def resolve_title(drafts: Sequence[QuizDraft]) -> str:
    """First nonempty title in result order, or empty string"""
    for draft in drafts:
        if draft.title.strip():
            return draft.title
    return ""


def merge_results(
    results: Sequence[BatchResult],
    per_batch_cap: int,
    total_cap: int,
    shuffle: bool = True,
    rng: Optional[random.Random] = None,
    synthesize_title: bool = True,
    usage: Optional[TokenUsage] = None,
    today: Optional[datetime.date] = None,
) -> QuizDraft:
    """Merge batch results into a single draft

    Capping each batch before the shuffle gives every batch equal weight in the
    final sample regardless of how much it produced; with more than two full
    batches some content is always cut.

    Args:
        results: One entry per batch, either a QuizDraft or the exception it failed with
        per_batch_cap: Maximum questions taken from any one batch
        total_cap: Maximum questions in the merged draft
        shuffle: Randomize question order before the total cap is applied
        rng: Random source for the shuffle (module-level random if None)
        synthesize_title: Fall back to a date title when no batch has one
        usage: Aggregate usage attached to any error raised
        today: Date for the synthesized title (defaults to today)

    Raises:
        BatchMergeError: If any batch failed
        NoQuestionsError: If nothing survived validation
    """
    errors = [str(r) for r in results if isinstance(r, BaseException)]
    if errors:
        logger.error("batch failures prevent merge", failed=len(errors), total=len(results))
        raise BatchMergeError(errors, usage=usage)

    drafts = [r for r in results if isinstance(r, QuizDraft)]

    questions: List[QuestionDraft] = []
    for draft in drafts:
        valid = filter_valid_questions(draft.questions)
        questions.extend(valid[:per_batch_cap])

    if not questions:
        raise NoQuestionsError("no questions generated from any files", usage=usage)

    if shuffle:
        (rng or random).shuffle(questions)
    questions = questions[:total_cap]

    title = resolve_title(drafts)
    if not title and synthesize_title:
        title = default_title(today)

    logger.debug("merged batch results", batches=len(drafts), questions=len(questions))
    return QuizDraft(title=title, questions=questions)
