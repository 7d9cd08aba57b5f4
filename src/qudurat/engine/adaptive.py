"""Learner profile: student level and weak-topic tracking.

Weak topics feed the weakness-focused few-shot selection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from qudurat.engine.grader import ExerciseResult, QuestionResult


class StudentLevel(str, Enum):
    BEGINNER = "مبتدئ"
    INTERMEDIATE = "متوسط"
    ADVANCED = "متقدم"

    @classmethod
    def from_choice(cls, choice: int) -> "StudentLevel":
        return {1: cls.BEGINNER, 2: cls.INTERMEDIATE, 3: cls.ADVANCED}.get(
            choice, cls.BEGINNER
        )


@dataclass
class LearnerProfile:
    level: StudentLevel = StudentLevel.INTERMEDIATE
    total_attempts: int = 0
    correct_count: int = 0
    topic_stats: dict[str, list[int]] = field(default_factory=dict)  # topic -> [correct, total]

    @property
    def accuracy(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return self.correct_count / self.total_attempts

    def record_result(self, result: QuestionResult) -> None:
        self.total_attempts += 1
        if result.correct:
            self.correct_count += 1
        if result.topic:
            stats = self.topic_stats.setdefault(result.topic, [0, 0])
            stats[0] += int(result.correct)
            stats[1] += 1

    def record_exercise(self, result: ExerciseResult) -> None:
        for r in result.results:
            self.record_result(r)

    def weak_topics(self, threshold: float = 0.6, min_attempts: int = 2) -> list[str]:
        """Topics answered below ``threshold`` accuracy, weakest first."""
        weak = [
            (correct / total, topic)
            for topic, (correct, total) in self.topic_stats.items()
            if total >= min_attempts and correct / total < threshold
        ]
        return [topic for _, topic in sorted(weak)]
