"""Few-shot example selection for question generation prompts.

Picks a handful of curated examples for a section, shaped by a diversity
strategy and the student's weak topics, and renders them into a prompt.
"""

from __future__ import annotations

import json
import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass
class FewShotExample:
    question_text: str
    options: Any  # list of option strings or a letter -> text mapping
    correct_answer: str
    explanation: str = ""
    quality_score: Optional[float] = None
    subject: Optional[str] = None
    difficulty: Optional[str] = None
    section: str = ""
    test_type: str = "قدرات"

    def to_dict(self) -> dict:
        return {
            "question_text": self.question_text,
            "options": self.options,
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "quality_score": self.quality_score,
            "subject": self.subject,
            "difficulty": self.difficulty,
            "section": self.section,
            "test_type": self.test_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FewShotExample":
        """Build an example from an upload payload or YAML entry."""
        if not isinstance(data, dict):
            raise ValueError("Training example must be a mapping")
        for key in ("question_text", "options", "correct_answer", "section"):
            if not data.get(key):
                raise ValueError(f"Training example is missing '{key}'")
        quality = data.get("quality_score")
        return cls(
            question_text=str(data["question_text"]),
            options=data["options"],
            correct_answer=str(data["correct_answer"]),
            explanation=data.get("explanation", ""),
            quality_score=float(quality) if quality is not None else None,
            subject=data.get("subject"),
            difficulty=data.get("difficulty"),
            section=data["section"],
            test_type=data.get("test_type", "قدرات"),
        )


class DiversityMode(str, Enum):
    BALANCED = "balanced"
    TOPIC_FOCUSED = "topic-focused"
    DIFFICULTY_SPREAD = "difficulty-spread"
    WEAKNESS_FOCUSED = "weakness-focused"


@dataclass
class SelectionParams:
    section: str
    test_type: str
    topic: Optional[str] = None
    difficulty: Optional[str] = None
    count: int = 3
    use_quality_scoring: bool = True
    diversity_mode: DiversityMode = DiversityMode.BALANCED
    weak_topics: list[str] = field(default_factory=list)
    student_level: str = "متوسط"


class ExampleSource(Protocol):
    def query(
        self,
        section: str,
        test_type: str,
        min_quality: Optional[float] = None,
        limit: int = 30,
        order_by_quality: bool = True,
    ) -> list[FewShotExample]: ...


def _unique(examples: list[FewShotExample]) -> list[FewShotExample]:
    seen: set[int] = set()
    out = []
    for ex in examples:
        if id(ex) not in seen:
            seen.add(id(ex))
            out.append(ex)
    return out


def select_few_shot_examples(
    source: ExampleSource,
    params: SelectionParams,
    max_pool: int = 30,
    rng: Optional[random.Random] = None,
) -> list[FewShotExample]:
    """Select up to ``params.count`` examples from ``source``."""
    count = params.count
    beginner = params.student_level == "مبتدئ"
    min_quality = (4 if beginner else 3) if params.use_quality_scoring else None

    logger.debug(
        "Selecting few-shot examples for %s/%s (mode=%s, count=%d, weak_topics=%d)",
        params.test_type, params.section, params.diversity_mode.value,
        count, len(params.weak_topics),
    )

    data = source.query(
        params.section, params.test_type,
        min_quality=min_quality, limit=min(count * 4, max_pool),
        order_by_quality=params.use_quality_scoring,
    )
    if not data:
        logger.warning("No few-shot examples found for %s/%s", params.test_type, params.section)
        return []

    mode = params.diversity_mode
    if mode == DiversityMode.WEAKNESS_FOCUSED:
        weak = [ex for ex in data if ex.subject in params.weak_topics]
        other = [ex for ex in data if ex.subject not in params.weak_topics]
        if beginner and weak:
            easy_weak = [ex for ex in weak if ex.difficulty in ("easy", "medium")]
            hard_weak = [ex for ex in weak if ex.difficulty == "hard"]
            selected = (
                easy_weak[: math.ceil(count * 0.6)]
                + hard_weak[: math.floor(count * 0.2)]
                + other[: math.floor(count * 0.2)]
            )
        else:
            selected = weak[: math.ceil(count * 0.7)] + other[: math.floor(count * 0.3)]

    elif mode == DiversityMode.TOPIC_FOCUSED:
        matches = [ex for ex in data if params.topic and ex.subject == params.topic]
        others = [ex for ex in data if not params.topic or ex.subject != params.topic]
        selected = matches[: math.ceil(count * 0.7)] + others[: math.floor(count * 0.3)]

    elif mode == DiversityMode.DIFFICULTY_SPREAD:
        by_difficulty: dict[str, list[FewShotExample]] = {"easy": [], "medium": [], "hard": []}
        for ex in data:
            bucket = by_difficulty.get(ex.difficulty or "medium")
            if bucket is not None:
                bucket.append(ex)
        per_level = math.ceil(count / 3)
        selected = (
            by_difficulty["easy"][:per_level]
            + by_difficulty["medium"][:per_level]
            + by_difficulty["hard"][:per_level]
        )

    else:
        rng = rng or random.Random()
        relevant = [ex for ex in data if params.topic and ex.subject == params.topic]
        high_quality = [ex for ex in data if (ex.quality_score or 0) >= 4]
        shuffled = list(data)
        rng.shuffle(shuffled)
        selected = _unique(relevant + high_quality + shuffled)

    selected = selected[:count]
    logger.info("Selected %d few-shot examples (%s strategy)", len(selected), mode.value)
    return selected


def inject_few_shot_examples(base_prompt: str, examples: list[FewShotExample]) -> str:
    """Append the examples section to a generation prompt."""
    if not examples:
        logger.debug("No examples to inject")
        return base_prompt

    blocks = []
    for idx, ex in enumerate(examples, start=1):
        options = json.dumps(ex.options, ensure_ascii=False, indent=2)
        blocks.append(
            f"\n### مثال {idx}:\n"
            f"**السؤال:** {ex.question_text}\n"
            f"**الخيارات:** {options}\n"
            f"**الإجابة الصحيحة:** {ex.correct_answer}\n"
            f"**الشرح:** {ex.explanation}\n"
            "**لماذا هذا مثال ممتاز:**\n"
            "- السؤال واضح ومباشر\n"
            "- الخيارات متميزة ومختلفة\n"
            "- الشرح مفصل وسهل الفهم\n"
            "- يتبع المعايير الأكاديمية\n"
        )

    section = (
        "\n\n## 📚 أمثلة لأسئلة عالية الجودة (اتبع نفس المستوى):\n\n"
        + "\n---\n".join(blocks)
        + "\n**مهم جداً:** \n"
        "- اتبع **نفس مستوى الجودة والوضوح** في الأمثلة أعلاه\n"
        "- استخدم نفس أسلوب الصياغة والشرح\n"
        "- تأكد من تنوع الأسئلة وعدم تكرار المفاهيم بنفس الطريقة\n"
    )
    return base_prompt + section
