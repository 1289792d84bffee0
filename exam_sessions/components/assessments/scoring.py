"""Pure scoring of an answer vector against the questions drawn into an attempt."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence


@dataclass(frozen=True)
class ScoreResult:
    correct_count: int
    wrong_count: int
    unanswered_count: int
    percentage: int
    missed_questions: List[int] = field(default_factory=list)

    @property
    def total_questions(self) -> int:
        return self.correct_count + self.wrong_count + self.unanswered_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correct_count": self.correct_count,
            "wrong_count": self.wrong_count,
            "unanswered_count": self.unanswered_count,
            "percentage": self.percentage,
            "missed_questions": list(self.missed_questions),
        }


def correct_option_index(question: Any) -> Optional[int]:
    if isinstance(question, dict):
        value = question.get("correct_option_index", question.get("correct"))
    else:
        value = getattr(question, "correct_option_index", None)
    return None if value is None else int(value)


def _percent_half_up(part: int, total: int) -> int:
    if not total:
        return 0
    return (part * 200 + total) // (total * 2)


def score_answers(questions: Sequence[Any], answers: Sequence[Optional[int]]) -> ScoreResult:
    """Classify each slot as correct, wrong or unanswered.

    Answers shorter than the question list leave the tail unanswered; a
    question-less assessment scores 0% instead of dividing by zero. The
    percentage rounds halves up (1 of 8 is 13%).
    """
    correct = wrong = unanswered = 0
    missed: List[int] = []
    for index, question in enumerate(questions):
        answer = answers[index] if index < len(answers) else None
        if answer is None:
            unanswered += 1
            missed.append(index)
        elif answer == correct_option_index(question):
            correct += 1
        else:
            wrong += 1
            missed.append(index)

    total = len(questions)
    percentage = _percent_half_up(correct, total)
    return ScoreResult(
        correct_count=correct,
        wrong_count=wrong,
        unanswered_count=unanswered,
        percentage=percentage,
        missed_questions=missed,
    )


def is_passing(result: ScoreResult, passing_percentage: int) -> bool:
    return result.percentage >= passing_percentage
