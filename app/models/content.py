"""Content graph: courses → trainings → sub-units, with optional quizzes.

Quiz questions are stored as loosely-shaped JSON (string options or
``{id, text}`` objects, index-based or id-based correct answers).
``Question.from_raw`` normalizes that into one shape right after the
content is read, so nothing downstream has to guess.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union
from uuid import uuid4


@dataclass(frozen=True, slots=True)
class Option:
    id: str
    text: str


@dataclass(frozen=True, slots=True)
class ById:
    """Correct answer named by option id (or free-text answer)."""

    option_id: str


@dataclass(frozen=True, slots=True)
class ByIndex:
    """Correct answer named by position in the option list."""

    index: int


CorrectAnswer = Union[ById, ByIndex]


@dataclass(frozen=True, slots=True)
class Question:
    id: str
    type: str  # multiple_choice|true_false|short_answer
    text: str
    options: tuple[Option, ...]
    correct: CorrectAnswer
    points: int = 1
    explanation: str | None = None

    def correct_index(self) -> int | None:
        """Position of the correct option in ``options``, if resolvable."""
        if isinstance(self.correct, ByIndex):
            if 0 <= self.correct.index < len(self.options):
                return self.correct.index
            return None
        for i, opt in enumerate(self.options):
            if opt.id == self.correct.option_id:
                return i
        return None

    @staticmethod
    def from_raw(raw: dict[str, Any], position: int) -> Question:
        qid = str(raw.get("id") or f"q-{position}")
        options: list[Option] = []
        for i, opt in enumerate(raw.get("options") or []):
            if isinstance(opt, str):
                options.append(Option(id=f"opt-{qid}-{i}", text=opt))
            elif isinstance(opt, dict):
                text = opt.get("text") or opt.get("label") or ""
                options.append(
                    Option(id=str(opt.get("id") or f"opt-{qid}-{i}"), text=str(text))
                )
            else:
                options.append(Option(id=f"opt-{qid}-{i}", text=str(opt)))

        return Question(
            id=qid,
            type=str(raw.get("type") or "multiple_choice"),
            text=str(raw.get("question") or raw.get("text") or ""),
            options=tuple(options),
            correct=_normalize_correct(raw, options),
            points=int(raw.get("points") or 1),
            explanation=raw.get("explanation"),
        )


def _normalize_correct(raw: dict[str, Any], options: list[Option]) -> CorrectAnswer:
    value = raw.get("correctAnswer", raw.get("correct_answer"))

    # isinstance(True, int) holds, so reject bools before the int branch
    if isinstance(value, int) and not isinstance(value, bool):
        return ByIndex(value)

    # Some stored quizzes flag the right option instead of naming it
    for i, opt in enumerate(raw.get("options") or []):
        if isinstance(opt, dict) and opt.get("isCorrect") is True:
            return ByIndex(i)

    if value is None:
        return ByIndex(0)

    text = str(value)
    if any(opt.id == text for opt in options):
        return ById(text)
    if options and text.isdigit() and int(text) < len(options):
        return ByIndex(int(text))
    return ById(text)


def parse_questions(raw_questions: list[dict[str, Any]]) -> tuple[Question, ...]:
    return tuple(Question.from_raw(q, i) for i, q in enumerate(raw_questions))


@dataclass(frozen=True, slots=True)
class Quiz:
    id: str
    questions: tuple[Question, ...]
    title: str = ""
    passing_score: int = 70
    allow_retake: bool = True
    max_attempts: int | None = None
    questions_to_show: int | None = None
    time_limit: int | None = None  # minutes

    @staticmethod
    def new(
        *,
        questions: tuple[Question, ...],
        title: str = "",
        passing_score: int = 70,
        allow_retake: bool = True,
        max_attempts: int | None = None,
        questions_to_show: int | None = None,
        time_limit: int | None = None,
    ) -> Quiz:
        return Quiz(
            id=str(uuid4()),
            questions=questions,
            title=title,
            passing_score=passing_score,
            allow_retake=allow_retake,
            max_attempts=max_attempts,
            questions_to_show=questions_to_show,
            time_limit=time_limit,
        )


@dataclass(frozen=True, slots=True)
class SubUnit:
    """A mini-training nested inside a training."""

    id: str
    training_id: str
    title: str
    position: int = 0
    video_duration: int | None = None  # seconds
    quiz: Quiz | None = None

    @property
    def has_video(self) -> bool:
        return bool(self.video_duration) and self.video_duration > 0  # type: ignore[operator]

    @staticmethod
    def new(
        *,
        training_id: str,
        title: str,
        position: int = 0,
        video_duration: int | None = None,
    ) -> SubUnit:
        return SubUnit(
            id=str(uuid4()),
            training_id=training_id,
            title=title,
            position=position,
            video_duration=video_duration,
        )


@dataclass(frozen=True, slots=True)
class Training:
    id: str
    course_id: str
    title: str
    video_duration: int | None = None  # seconds
    minimum_watch_time: int = 0  # seconds
    total_xp: int = 0
    is_published: bool = True
    quiz: Quiz | None = None
    sub_units: tuple[SubUnit, ...] = ()

    @property
    def has_video(self) -> bool:
        return bool(self.video_duration) and self.video_duration > 0  # type: ignore[operator]

    @staticmethod
    def new(
        *,
        course_id: str,
        title: str,
        video_duration: int | None = None,
        minimum_watch_time: int = 0,
        total_xp: int = 0,
        is_published: bool = True,
    ) -> Training:
        return Training(
            id=str(uuid4()),
            course_id=course_id,
            title=title,
            video_duration=video_duration,
            minimum_watch_time=minimum_watch_time,
            total_xp=total_xp,
            is_published=is_published,
        )


@dataclass(frozen=True, slots=True)
class Course:
    id: str
    title: str

    @staticmethod
    def new(*, title: str) -> Course:
        return Course(id=str(uuid4()), title=title)


# --- Derived shape (never persisted) ---


@dataclass(frozen=True, slots=True)
class SubUnitShape:
    has_video: bool
    has_quiz: bool


@dataclass(frozen=True, slots=True)
class TrainingContentShape:
    has_video: bool
    has_quiz: bool
    sub_unit_shapes: tuple[SubUnitShape, ...] = field(default_factory=tuple)

    @property
    def has_sub_units(self) -> bool:
        return len(self.sub_unit_shapes) > 0

    @staticmethod
    def of(training: Training) -> TrainingContentShape:
        return TrainingContentShape(
            has_video=training.has_video,
            has_quiz=training.quiz is not None,
            sub_unit_shapes=tuple(
                SubUnitShape(has_video=su.has_video, has_quiz=su.quiz is not None)
                for su in training.sub_units
            ),
        )


def question_to_raw(question: Question) -> dict[str, Any]:
    """Inverse of ``Question.from_raw`` for the normalized shape."""
    correct: int | str
    if isinstance(question.correct, ByIndex):
        correct = question.correct.index
    else:
        correct = question.correct.option_id
    return {
        "id": question.id,
        "type": question.type,
        "question": question.text,
        "options": [{"id": o.id, "text": o.text} for o in question.options],
        "correctAnswer": correct,
        "points": question.points,
        "explanation": question.explanation,
    }
