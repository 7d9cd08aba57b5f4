"""YAML exercise parser for Qudurat."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from qudurat.engine.answers import normalize_correct_answer


@dataclass
class Question:
    id: str
    text: str
    options: list[str]
    correct_answer: str
    explanation: str = ""
    topic: Optional[str] = None
    difficulty: str = "medium"  # "easy", "medium", "hard"

    @property
    def full_correct_answer(self) -> str:
        """Correct answer expanded to its option text where possible."""
        return normalize_correct_answer(self.correct_answer, self.options)


@dataclass
class Exercise:
    id: str
    title: str
    section: str
    test_type: str = "قدرات"
    questions: list[Question] = field(default_factory=list)
    base_path: Optional[Path] = None

    def get_question(self, question_id: str) -> Optional[Question]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None


def _parse_options(raw) -> list[str]:
    """Options come either as a list or as a letter -> text mapping."""
    if isinstance(raw, dict):
        return [f"{key}. {value}" for key, value in raw.items()]
    if isinstance(raw, list):
        return [str(item) for item in raw]
    return []


def parse_question(raw: dict, index: int = 0) -> Question:
    """Build a Question from a raw mapping (file or request payload)."""
    for key in ("text", "options", "correct_answer"):
        if not raw.get(key):
            raise ValueError(f"Question {raw.get('id', index + 1)} is missing '{key}'")

    return Question(
        id=str(raw.get("id", f"q{index + 1}")),
        text=raw["text"],
        options=_parse_options(raw["options"]),
        correct_answer=str(raw["correct_answer"]),
        explanation=raw.get("explanation", ""),
        topic=raw.get("topic"),
        difficulty=raw.get("difficulty", "medium"),
    )


def parse_exercise(data: dict, base_path: Optional[Path] = None) -> Exercise:
    if not isinstance(data, dict) or "exercise" not in data:
        raise ValueError("Exercise data has no 'exercise' block")
    if not data.get("questions"):
        raise ValueError("Exercise data has no 'questions'")

    e = data["exercise"]
    return Exercise(
        id=str(e.get("id", "")),
        title=e.get("title", ""),
        section=e.get("section", ""),
        test_type=e.get("test_type", "قدرات"),
        questions=[parse_question(q, i) for i, q in enumerate(data["questions"])],
        base_path=base_path,
    )


def load_exercise(path: Path) -> Exercise:
    """Load an exercise YAML file."""
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    try:
        return parse_exercise(data, base_path=path.parent)
    except ValueError as e:
        raise ValueError(f"{path}: {e}") from e
