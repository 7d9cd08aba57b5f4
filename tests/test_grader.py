"""Tests for exercise loading and grading."""

import pytest

from qudurat.engine.grader import Grader
from qudurat.engine.question_loader import Question, load_exercise, parse_exercise


def test_load_exercise(exercise_file):
    exercise = load_exercise(exercise_file)
    assert exercise.id == "daily-001"
    assert exercise.section == "كمي"
    assert exercise.test_type == "قدرات"
    assert len(exercise.questions) == 3
    assert exercise.base_path == exercise_file.parent


def test_mapping_options_are_flattened(exercise_file):
    exercise = load_exercise(exercise_file)
    q3 = exercise.get_question("q3")
    assert q3.options == ["أ. 2", "ب. 3", "ج. 4", "د. 5"]
    assert q3.full_correct_answer == "ج. 4"


def test_missing_field_raises(exercise_data):
    del exercise_data["questions"][1]["correct_answer"]
    with pytest.raises(ValueError, match="correct_answer"):
        parse_exercise(exercise_data)


def test_missing_exercise_block():
    with pytest.raises(ValueError, match="'exercise'"):
        parse_exercise({"questions": []})


def test_load_reports_path(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("exercise:\n  id: x\n", encoding="utf-8")
    with pytest.raises(ValueError, match="broken.yaml"):
        load_exercise(path)


class TestGrader:
    @pytest.fixture
    def grader(self):
        return Grader()

    @pytest.fixture
    def question(self, options):
        return Question(
            id="q1", text="?", options=options, correct_answer="ج", topic="الأعداد",
        )

    def test_letter_answer(self, grader, question):
        result = grader.grade_question(question, "ج")
        assert result.correct
        assert result.correct_answer == "ج. ثلاثة"

    def test_full_option_answer(self, grader, question):
        assert grader.grade_question(question, "ج. ثلاثة").correct

    def test_option_text_only(self, grader, question):
        # bare key resolves to the full option before comparing
        assert grader.grade_question(question, "ثلاثة").correct

    def test_wrong_answer(self, grader, question):
        result = grader.grade_question(question, "ب. اثنان")
        assert not result.correct
        assert result.correct_answer == "ج. ثلاثة"

    def test_unanswered(self, grader, question):
        result = grader.grade_question(question, None)
        assert not result.correct
        assert result.user_answer == ""

    def test_grade_exercise(self, grader, exercise_file):
        exercise = load_exercise(exercise_file)
        result = grader.grade_exercise(exercise, {"q1": "ج", "q2": "ب", "q3": "أ"})
        assert result.total == 3
        assert result.correct_count == 2
        assert result.score == 67
        assert [f.question_id for f in result.feedback] == ["q3"]
        assert result.feedback[0].correct_answer == "ج. 4"

    def test_all_correct(self, grader, exercise_file):
        exercise = load_exercise(exercise_file)
        result = grader.grade_exercise(exercise, {"q1": "ج. ثلاثة", "q2": "ب. 90 درجة", "q3": "ج"})
        assert result.score == 100
        assert not result.feedback
        assert result.encouragement.startswith("ممتاز")

    def test_missing_answers_count_as_wrong(self, grader, exercise_file):
        exercise = load_exercise(exercise_file)
        result = grader.grade_exercise(exercise, {})
        assert result.score == 0
        assert len(result.feedback) == 3

    def test_topic_breakdown(self, grader, exercise_file):
        exercise = load_exercise(exercise_file)
        result = grader.grade_exercise(exercise, {"q1": "ج", "q2": "أ"})
        assert result.topic_breakdown() == {
            "الأعداد": (1, 1),
            "الهندسة": (0, 1),
            "الجبر": (0, 1),
        }


class TestMalformedAnswers:
    def test_numeric_answer_is_coerced(self, exercise_file):
        exercise = load_exercise(exercise_file)
        # q3 options are "ج. 4" etc., correct key "ج"
        result = Grader().grade_exercise(exercise, {"q1": 3, "q3": 4})
        by_id = {r.question_id: r for r in result.results}
        assert by_id["q1"].correct is False
        assert by_id["q1"].user_answer == "3"
        assert by_id["q3"].correct is True

    def test_nested_answer_does_not_crash(self, exercise_file):
        exercise = load_exercise(exercise_file)
        result = Grader().grade_exercise(exercise, {"q1": ["ج"], "q2": {"x": 1}})
        assert result.correct_count == 0

    def test_answers_must_be_mapping(self, exercise_file):
        exercise = load_exercise(exercise_file)
        with pytest.raises(ValueError, match="answers must map"):
            Grader().grade_exercise(exercise, ["أ"])
