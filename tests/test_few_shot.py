"""Tests for few-shot selection and the training example store."""

from __future__ import annotations

import random

import pytest

from qudurat.engine.few_shot import (
    DiversityMode,
    FewShotExample,
    SelectionParams,
    inject_few_shot_examples,
    select_few_shot_examples,
)
from qudurat.state.training_examples import TrainingExampleStore


def _example(n, subject="الجبر", difficulty="medium", quality=4.0, section="كمي"):
    return FewShotExample(
        question_text=f"سؤال {n}",
        options=["أ. 1", "ب. 2", "ج. 3", "د. 4"],
        correct_answer="ب",
        explanation=f"شرح {n}",
        quality_score=quality,
        subject=subject,
        difficulty=difficulty,
        section=section,
        test_type="قدرات",
    )


@pytest.fixture
def store(tmp_path):
    return TrainingExampleStore(db_path=tmp_path / "examples.db")


class TestTrainingExampleStore:
    def test_add_and_count(self, store):
        store.add(_example(1))
        store.add(_example(2))
        assert store.count() == 2

    def test_query_orders_by_quality(self, store):
        store.add(_example(1, quality=3.0))
        store.add(_example(2, quality=5.0))
        store.add(_example(3, quality=None))
        rows = store.query("كمي", "قدرات")
        assert [r.question_text for r in rows] == ["سؤال 2", "سؤال 1", "سؤال 3"]
        assert rows[0].options == ["أ. 1", "ب. 2", "ج. 3", "د. 4"]

    def test_query_filters(self, store):
        store.add(_example(1, quality=2.0))
        store.add(_example(2, quality=4.0))
        store.add(_example(3, section="لفظي"))
        rows = store.query("كمي", "قدرات", min_quality=3)
        assert [r.question_text for r in rows] == ["سؤال 2"]

    def test_query_limit(self, store):
        for i in range(5):
            store.add(_example(i))
        assert len(store.query("كمي", "قدرات", limit=2)) == 2


class TestSelection:
    def test_empty_pool(self, store):
        params = SelectionParams(section="كمي", test_type="قدرات")
        assert select_few_shot_examples(store, params) == []

    def test_beginner_quality_threshold(self, store):
        store.add(_example(1, quality=3.0))
        store.add(_example(2, quality=4.0))
        params = SelectionParams(section="كمي", test_type="قدرات", student_level="مبتدئ")
        selected = select_few_shot_examples(store, params, rng=random.Random(1))
        assert [e.question_text for e in selected] == ["سؤال 2"]

    def test_quality_scoring_off(self, store):
        store.add(_example(1, quality=1.0))
        params = SelectionParams(section="كمي", test_type="قدرات", use_quality_scoring=False)
        assert len(select_few_shot_examples(store, params, rng=random.Random(1))) == 1

    def test_balanced_prefers_topic(self, store):
        store.add(_example(1, subject="الهندسة", quality=3.0))
        store.add(_example(2, subject="الجبر", quality=5.0))
        store.add(_example(3, subject="الهندسة", quality=3.5))
        params = SelectionParams(section="كمي", test_type="قدرات", topic="الهندسة", count=3)
        selected = select_few_shot_examples(store, params, rng=random.Random(7))
        assert [e.question_text for e in selected][:2] == ["سؤال 3", "سؤال 1"]
        assert len(selected) == 3
        assert len({e.question_text for e in selected}) == 3

    def test_topic_focused(self, store):
        for i in range(4):
            store.add(_example(i, subject="الهندسة"))
        for i in range(4, 8):
            store.add(_example(i, subject="الجبر"))
        params = SelectionParams(
            section="كمي", test_type="قدرات", topic="الجبر", count=3,
            diversity_mode=DiversityMode.TOPIC_FOCUSED,
        )
        selected = select_few_shot_examples(store, params)
        # ceil(2.1) topic matches + floor(0.9) others
        assert [e.subject for e in selected] == ["الجبر"] * 3

    def test_difficulty_spread(self, store):
        store.add(_example(1, difficulty="hard"))
        store.add(_example(2, difficulty="easy"))
        store.add(_example(3, difficulty=None))
        store.add(_example(4, difficulty="unknown"))
        params = SelectionParams(
            section="كمي", test_type="قدرات", count=3,
            diversity_mode=DiversityMode.DIFFICULTY_SPREAD,
        )
        selected = select_few_shot_examples(store, params)
        assert [e.question_text for e in selected] == ["سؤال 2", "سؤال 3", "سؤال 1"]

    def test_weakness_focused(self, store):
        for i in range(3):
            store.add(_example(i, subject="الاحتمالات"))
        for i in range(3, 6):
            store.add(_example(i, subject="الجبر"))
        params = SelectionParams(
            section="كمي", test_type="قدرات", count=3,
            diversity_mode=DiversityMode.WEAKNESS_FOCUSED, weak_topics=["الاحتمالات"],
        )
        selected = select_few_shot_examples(store, params)
        assert [e.subject for e in selected] == ["الاحتمالات"] * 3

    def test_weakness_focused_beginner(self, store):
        store.add(_example(1, subject="الاحتمالات", difficulty="hard"))
        store.add(_example(2, subject="الاحتمالات", difficulty="easy"))
        store.add(_example(3, subject="الجبر"))
        params = SelectionParams(
            section="كمي", test_type="قدرات", count=5, student_level="مبتدئ",
            diversity_mode=DiversityMode.WEAKNESS_FOCUSED, weak_topics=["الاحتمالات"],
        )
        selected = select_few_shot_examples(store, params)
        assert [e.question_text for e in selected] == ["سؤال 2", "سؤال 1", "سؤال 3"]


class TestInjection:
    def test_no_examples(self):
        assert inject_few_shot_examples("prompt", []) == "prompt"

    def test_examples_rendered(self):
        prompt = inject_few_shot_examples("BASE", [_example(1), _example(2)])
        assert prompt.startswith("BASE")
        assert "### مثال 1:" in prompt
        assert "### مثال 2:" in prompt
        assert "**السؤال:** سؤال 1" in prompt
        assert '"ب. 2"' in prompt
        assert "**الإجابة الصحيحة:** ب" in prompt


class TestQualityOrdering:
    def test_insertion_order_without_quality_scoring(self, store):
        store.add(_example(1, quality=2.0))
        store.add(_example(2, quality=5.0))
        store.add(_example(3, quality=None))
        rows = store.query("كمي", "قدرات", order_by_quality=False)
        assert [r.question_text for r in rows] == ["سؤال 1", "سؤال 2", "سؤال 3"]

    def test_selection_follows_flag(self, store):
        store.add(_example(1, quality=2.0, difficulty="easy"))
        store.add(_example(2, quality=5.0, difficulty="easy"))
        params = SelectionParams(
            section="كمي", test_type="قدرات", count=1, use_quality_scoring=False,
            diversity_mode=DiversityMode.DIFFICULTY_SPREAD,
        )
        assert [e.question_text for e in select_few_shot_examples(store, params)] == ["سؤال 1"]

        params.use_quality_scoring = True
        assert [e.question_text for e in select_few_shot_examples(store, params)] == ["سؤال 2"]

    def test_from_dict(self):
        ex = FewShotExample.from_dict({
            "question_text": "س", "options": ["أ. 1"], "correct_answer": "أ",
            "section": "كمي", "quality_score": "4",
        })
        assert ex.quality_score == 4.0
        assert ex.test_type == "قدرات"

    def test_from_dict_missing_field(self):
        with pytest.raises(ValueError, match="options"):
            FewShotExample.from_dict({"question_text": "س", "correct_answer": "أ", "section": "كمي"})
