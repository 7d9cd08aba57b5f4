"""Shared fixtures for Qudurat tests."""

from __future__ import annotations

import pytest
import yaml

OPTIONS = ["أ. واحد", "ب. اثنان", "ج. ثلاثة", "د. أربعة"]


@pytest.fixture
def options():
    return list(OPTIONS)


@pytest.fixture
def exercise_data():
    return {
        "exercise": {
            "id": "daily-001",
            "title": "تمرين يومي",
            "section": "كمي",
            "test_type": "قدرات",
        },
        "questions": [
            {
                "id": "q1",
                "text": "ما ناتج 1 + 2؟",
                "options": list(OPTIONS),
                "correct_answer": "ج",
                "explanation": "1 + 2 = 3",
                "topic": "الأعداد",
                "difficulty": "easy",
            },
            {
                "id": "q2",
                "text": "كم درجة في الزاوية القائمة؟",
                "options": ["أ. 45 درجة", "ب. 90 درجة", "ج. 25 درجة", "د. 180 درجة"],
                "correct_answer": "ب. 90 درجة",
                "topic": "الهندسة",
            },
            {
                "id": "q3",
                "text": "إذا كان س + 2 = 6 فما قيمة س؟",
                "options": {"أ": "2", "ب": "3", "ج": "4", "د": "5"},
                "correct_answer": "ج",
                "topic": "الجبر",
                "difficulty": "medium",
            },
        ],
    }


@pytest.fixture
def exercise_file(tmp_path, exercise_data):
    """Write the sample exercise to a YAML file."""
    path = tmp_path / "daily-001.yaml"
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(exercise_data, f, allow_unicode=True)
    return path
