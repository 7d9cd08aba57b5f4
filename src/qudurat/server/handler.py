"""Server handler: dispatches JSON-lines requests to engine components."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Callable, Optional

from qudurat.config import test_structure
from qudurat.config.settings import Settings
from qudurat.engine.adaptive import LearnerProfile, StudentLevel
from qudurat.engine.answers import (
    find_full_correct_answer,
    is_answer_correct,
    normalize_correct_answer,
)
from qudurat.engine.few_shot import (
    DiversityMode,
    FewShotExample,
    SelectionParams,
    inject_few_shot_examples,
    select_few_shot_examples,
)
from qudurat.engine.grader import ExerciseResult, Grader
from qudurat.engine.question_loader import load_exercise, parse_exercise, parse_question
from qudurat.state.progress import ProgressStore
from qudurat.state.question_cache import QuestionCache
from qudurat.state.training_examples import TrainingExampleStore

from .protocol import Notification


def _result_to_dict(result: ExerciseResult) -> dict:
    return {
        "exerciseId": result.exercise_id,
        "score": result.score,
        "correctCount": result.correct_count,
        "total": result.total,
        "encouragement": result.encouragement,
        "results": [
            {
                "questionId": r.question_id,
                "userAnswer": r.user_answer,
                "correct": r.correct,
                "correctAnswer": r.correct_answer,
                "topic": r.topic,
            }
            for r in result.results
        ],
        "feedback": [
            {
                "questionId": f.question_id,
                "severity": f.severity,
                "message": f.message,
                "correctAnswer": f.correct_answer,
            }
            for f in result.feedback
        ],
    }


def _require(params: dict, key: str):
    if key not in params:
        raise ValueError(f"Missing parameter: {key}")
    return params[key]


class ServerHandler:
    """Routes incoming requests to engine methods and returns result dicts."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        write_notification: Optional[Callable[[Notification], None]] = None,
    ):
        self.settings = settings or Settings.load()
        self._write_notification = write_notification or (lambda n: None)

        self.grader = Grader()
        self.progress = ProgressStore(db_path=self.settings.progress_db)
        self.cache = QuestionCache(
            db_path=self.settings.cache_db,
            ttl_hours=self.settings.cache.ttl_hours,
            reservation_timeout_minutes=self.settings.cache.reservation_timeout_minutes,
            low_water_mark=self.settings.cache.low_water_mark,
        )
        self.examples = TrainingExampleStore(db_path=self.settings.examples_db)

        self._profiles: dict[str, LearnerProfile] = {}

    def profile_for(self, user_id: str) -> LearnerProfile:
        return self._profiles.setdefault(user_id, LearnerProfile())

    async def dispatch(self, msg: dict) -> dict:
        """Route a request message to the appropriate handler method."""
        method = msg.get("method", "")
        params = msg.get("params") or {}

        handler_map = {
            "isAnswerCorrect": self._is_answer_correct,
            "normalizeCorrectAnswer": self._normalize_correct_answer,
            "findFullCorrectAnswer": self._find_full_correct_answer,
            "gradeExercise": self._grade_exercise,
            "getHistory": self._get_history,
            "getProfile": self._get_profile,
            "listSections": self._list_sections,
            "selectFewShotExamples": self._select_few_shot_examples,
            "cleanupCache": self._cleanup_cache,
            "cacheStats": self._cache_stats,
            "addCachedQuestion": self._add_cached_question,
            "reserveQuestion": self._reserve_question,
            "markQuestionUsed": self._mark_question_used,
            "addTrainingExample": self._add_training_example,
            "resetHistory": self._reset_history,
        }

        handler = handler_map.get(method)
        if handler is None:
            raise ValueError(f"Unknown method: {method}")

        return await handler(params)

    async def _is_answer_correct(self, params: dict) -> dict:
        return {
            "correct": is_answer_correct(
                params.get("userAnswer"), params.get("correctAnswer")
            )
        }

    async def _normalize_correct_answer(self, params: dict) -> dict:
        return {
            "answer": normalize_correct_answer(
                params.get("correctAnswer"), params.get("options") or []
            )
        }

    async def _find_full_correct_answer(self, params: dict) -> dict:
        return {
            "answer": find_full_correct_answer(
                params.get("correctAnswerKey"), params.get("options") or []
            )
        }

    async def _grade_exercise(self, params: dict) -> dict:
        user_id = _require(params, "userId")
        answers = params.get("answers") or {}
        if not isinstance(answers, dict):
            raise ValueError("answers must map question ids to answers")

        if "path" in params:
            exercise = load_exercise(Path(params["path"]))
        elif "exercise" in params:
            exercise = parse_exercise(params["exercise"])
        else:
            raise ValueError("Missing parameter: path or exercise")

        result = self.grader.grade_exercise(exercise, answers)
        self.progress.save(user_id, result, section=exercise.section)
        self.profile_for(user_id).record_exercise(result)

        payload = _result_to_dict(result)
        self._write_notification(Notification(
            "graded",
            {"userId": user_id, "exerciseId": exercise.id, "score": result.score},
        ))
        return payload

    async def _get_history(self, params: dict) -> dict:
        user_id = _require(params, "userId")
        records = self.progress.get_history(user_id, limit=params.get("limit", 20))
        return {
            "summary": self.progress.get_summary(user_id),
            "history": [asdict(r) for r in records],
        }

    async def _get_profile(self, params: dict) -> dict:
        user_id = _require(params, "userId")
        profile = self.profile_for(user_id)
        if "level" in params:
            profile.level = StudentLevel(params["level"])
        return {
            "level": profile.level.value,
            "totalAttempts": profile.total_attempts,
            "accuracy": profile.accuracy,
            "weakTopics": profile.weak_topics(),
        }

    async def _list_sections(self, params: dict) -> dict:
        return {
            "sections": [
                {
                    "id": s.id,
                    "nameAr": s.name_ar,
                    "icon": s.icon,
                    "topics": list(s.topics),
                }
                for s in test_structure.get_sections()
            ]
        }

    async def _select_few_shot_examples(self, params: dict) -> dict:
        section = _require(params, "section")
        if test_structure.get_section_info(section) is None:
            raise ValueError(f"Unknown section: {section}")

        weak_topics = params.get("weakTopics")
        level = params.get("studentLevel")
        user_id = params.get("userId")
        if user_id:
            profile = self.profile_for(user_id)
            if weak_topics is None:
                weak_topics = profile.weak_topics()
            level = level or profile.level.value

        selection = SelectionParams(
            section=section,
            test_type=params.get("testType", "قدرات"),
            topic=params.get("topic"),
            difficulty=params.get("difficulty"),
            count=params.get("count", self.settings.few_shot.count),
            use_quality_scoring=params.get(
                "useQualityScoring", self.settings.few_shot.use_quality_scoring
            ),
            diversity_mode=DiversityMode(params.get("diversityMode", "balanced")),
            weak_topics=weak_topics or [],
            student_level=level or StudentLevel.INTERMEDIATE.value,
        )
        examples = select_few_shot_examples(
            self.examples, selection, max_pool=self.settings.few_shot.max_pool
        )

        result = {"examples": [ex.to_dict() for ex in examples]}
        if "basePrompt" in params:
            result["prompt"] = inject_few_shot_examples(params["basePrompt"], examples)
        return result

    async def _cleanup_cache(self, params: dict) -> dict:
        report = self.cache.cleanup()
        return report.to_dict()

    async def _cache_stats(self, params: dict) -> dict:
        return self.cache.stats().to_dict()

    async def _add_cached_question(self, params: dict) -> dict:
        question = _require(params, "question")
        section = _require(params, "section")
        if test_structure.get_section_info(section) is None:
            raise ValueError(f"Unknown section: {section}")
        if not isinstance(question, dict):
            raise ValueError("question must be a mapping")
        parse_question(question)

        cache_id = self.cache.add(
            question,
            test_type=params.get("testType", "قدرات"),
            section=section,
            difficulty=params.get("difficulty", "medium"),
            ttl_hours=params.get("ttlHours"),
        )
        return {"id": cache_id}

    async def _reserve_question(self, params: dict) -> dict:
        cached = self.cache.reserve(
            test_type=params.get("testType", "قدرات"),
            section=_require(params, "section"),
            user_id=_require(params, "userId"),
            difficulty=params.get("difficulty"),
        )
        if cached is None:
            return {"cacheId": None, "question": None}
        return {
            "cacheId": cached.id,
            "section": cached.section,
            "difficulty": cached.difficulty,
            "question": cached.question,
        }

    async def _mark_question_used(self, params: dict) -> dict:
        cache_id = _require(params, "cacheId")
        if not self.cache.mark_used(cache_id):
            raise ValueError(f"Unknown cached question: {cache_id}")
        return {"ok": True}

    async def _add_training_example(self, params: dict) -> dict:
        example = FewShotExample.from_dict(_require(params, "example"))
        if test_structure.get_section_info(example.section) is None:
            raise ValueError(f"Unknown section: {example.section}")
        return {"id": self.examples.add(example)}

    async def _reset_history(self, params: dict) -> dict:
        user_id = _require(params, "userId")
        self.progress.reset_user(user_id)
        self._profiles.pop(user_id, None)
        return {"ok": True}
