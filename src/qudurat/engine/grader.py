"""Exercise grading built on answer equivalence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from qudurat.engine.answers import (
    find_full_correct_answer,
    is_answer_correct,
    normalize_correct_answer,
)
from qudurat.engine.question_loader import Exercise, Question

logger = logging.getLogger(__name__)


@dataclass
class FeedbackItem:
    question_id: Optional[str]
    severity: str  # "warning", "info", "success"
    message: str
    correct_answer: Optional[str] = None


@dataclass
class QuestionResult:
    question_id: str
    user_answer: str
    correct: bool
    correct_answer: str  # display form
    topic: Optional[str] = None


@dataclass
class ExerciseResult:
    exercise_id: str
    results: list[QuestionResult] = field(default_factory=list)
    feedback: list[FeedbackItem] = field(default_factory=list)
    encouragement: str = ""

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def correct_count(self) -> int:
        return sum(1 for r in self.results if r.correct)

    @property
    def score(self) -> int:
        """Percentage of correct answers, rounded."""
        if not self.results:
            return 0
        return round(100 * self.correct_count / self.total)

    def topic_breakdown(self) -> dict[str, tuple[int, int]]:
        """Map each topic to (correct, total)."""
        breakdown: dict[str, tuple[int, int]] = {}
        for r in self.results:
            if not r.topic:
                continue
            correct, total = breakdown.get(r.topic, (0, 0))
            breakdown[r.topic] = (correct + int(r.correct), total + 1)
        return breakdown


class Grader:
    def grade_question(self, question: Question, user_answer: Optional[str]) -> QuestionResult:
        """Grade one answer against the stored correct answer."""
        user_answer = "" if user_answer is None else str(user_answer)
        correct = is_answer_correct(user_answer, question.correct_answer)

        if not correct:
            # Bare-letter keys may still resolve to the option the user picked
            full = find_full_correct_answer(question.correct_answer, question.options)
            if full != question.correct_answer:
                correct = is_answer_correct(user_answer, full)

        return QuestionResult(
            question_id=question.id,
            user_answer=user_answer,
            correct=correct,
            correct_answer=normalize_correct_answer(question.correct_answer, question.options),
            topic=question.topic,
        )

    def grade_exercise(self, exercise: Exercise, answers: dict[str, str]) -> ExerciseResult:
        """Grade every question; unanswered questions count as wrong."""
        if not isinstance(answers, dict):
            raise ValueError("answers must map question ids to answers")
        result = ExerciseResult(exercise_id=exercise.id)

        for question in exercise.questions:
            qr = self.grade_question(question, answers.get(question.id))
            result.results.append(qr)
            if not qr.correct:
                message = (
                    "لم تتم الإجابة على السؤال" if not qr.user_answer
                    else f"إجابة غير صحيحة. الإجابة الصحيحة: {qr.correct_answer}"
                )
                result.feedback.append(FeedbackItem(
                    question_id=question.id,
                    severity="warning",
                    message=message,
                    correct_answer=qr.correct_answer,
                ))

        if result.total and result.correct_count == result.total:
            result.encouragement = "ممتاز! جميع إجاباتك صحيحة"
        elif result.score >= 70:
            result.encouragement = "أداء جيد، استمر!"
        else:
            result.encouragement = "راجع الشروحات وحاول مرة أخرى"

        logger.info(
            "Graded exercise %s: %d/%d (%d%%)",
            exercise.id, result.correct_count, result.total, result.score,
        )
        return result
