"""
Quiz scoring and the per-question answer state machine.

Every question of an attempt moves Unanswered -> Revealed exactly once; the
attempt moves InProgress -> Completed when the last question is advanced
past (one-at-a-time mode) or when a full batch is submitted (all-at-once
mode). Scoring is server-authoritative and all-or-nothing.
"""

from __future__ import annotations
import random
from enum import Enum
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from .domain import AnswerRecord, Question
from .errors import NotFoundError, ValidationError


class QuestionState(str, Enum):
    UNANSWERED = "unanswered"
    REVEALED = "revealed"


class QuizState(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SubmittedAnswer(BaseModel):
    question_id: int
    selected_option: int


class ScoredAttempt(BaseModel):
    score: int
    total_questions: int
    answers: List[AnswerRecord]


# ============================================================================
# SCORING
# ============================================================================

def _check_option(question: Question, option_index: int) -> None:
    if option_index < 0 or option_index >= len(question.options):
        raise ValidationError(f"selectedOption must be 0..{len(question.options) - 1} for question {question.id}")


def score_answers(questions: Sequence[Question], answers: Sequence[SubmittedAnswer]) -> ScoredAttempt:
    """Score a complete batch of answers against the answer key.

    The batch must cover every question exactly once. Any unknown question id
    aborts the whole batch; nothing is partially scored.
    """
    if len(answers) != len(questions):
        raise ValidationError(f"Expected {len(questions)} answers, got {len(answers)}")
    key: Dict[int, Question] = {q.id: q for q in questions}
    seen = set()
    records: List[AnswerRecord] = []
    for ans in answers:
        question = key.get(ans.question_id)
        if question is None:
            raise NotFoundError(f"Question {ans.question_id} not found")
        if ans.question_id in seen:
            raise ValidationError(f"Question {ans.question_id} answered more than once")
        seen.add(ans.question_id)
        _check_option(question, ans.selected_option)
        records.append(
            AnswerRecord(
                question_id=ans.question_id,
                selected_option=ans.selected_option,
                is_correct=ans.selected_option == question.correct_option,
            )
        )
    return ScoredAttempt(
        score=sum(1 for r in records if r.is_correct),
        total_questions=len(questions),
        answers=records,
    )


# ============================================================================
# SHUFFLE
# ============================================================================

class ShuffledOptions(BaseModel):
    options: List[str]
    correct_index: int
    # order[i] is the canonical index of the option displayed at position i
    order: List[int]

    def to_canonical(self, display_index: int) -> int:
        return self.order[display_index]

    def to_display(self, canonical_index: int) -> int:
        return self.order.index(canonical_index)


def shuffle_and_remap(options: Sequence[str], correct_index: int, rng: Optional[random.Random] = None) -> ShuffledOptions:
    """Shuffle options and recompute where the correct one ended up."""
    order = list(range(len(options)))
    (rng or random).shuffle(order)
    return ShuffledOptions(
        options=[options[i] for i in order],
        correct_index=order.index(correct_index),
        order=order,
    )


def identity_options(options: Sequence[str], correct_index: int) -> ShuffledOptions:
    return ShuffledOptions(options=list(options), correct_index=correct_index, order=list(range(len(options))))


# ============================================================================
# ANSWER CONTROLLER
# ============================================================================

class SelectionResult(BaseModel):
    question_id: int
    selected_option: int  # as displayed
    correct_option: int  # as displayed, safe to reveal once the answer is locked
    is_correct: bool
    changed: bool


class QuizController:
    """Answer state for one attempt at a topic's questions.

    Option indexes going in and out are display indexes; with ``shuffle`` the
    display order differs from the stored order, and records are kept in the
    canonical order so assessments always refer to the stored options.
    """

    def __init__(self, questions: Sequence[Question], *, shuffle: bool = False, rng: Optional[random.Random] = None) -> None:
        if not questions:
            raise ValidationError("A quiz needs at least one question")
        self.questions: List[Question] = list(questions)
        self._by_id: Dict[int, Question] = {q.id: q for q in self.questions}
        self._views: Dict[int, ShuffledOptions] = {
            q.id: shuffle_and_remap(q.options, q.correct_option, rng) if shuffle else identity_options(q.options, q.correct_option)
            for q in self.questions
        }
        self._records: Dict[int, AnswerRecord] = {}
        self.current_index = 0
        self.state = QuizState.IN_PROGRESS

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def completed(self) -> bool:
        return self.state == QuizState.COMPLETED

    def _question(self, question_id: int) -> Question:
        question = self._by_id.get(question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        return question

    def question_state(self, question_id: int) -> QuestionState:
        self._question(question_id)
        return QuestionState.REVEALED if question_id in self._records else QuestionState.UNANSWERED

    def public_question(self, question: Question) -> Dict[str, object]:
        view = self._views[question.id]
        data: Dict[str, object] = {
            "id": question.id,
            "question": question.question,
            "options": list(view.options),
            "state": self.question_state(question.id).value,
        }
        record = self._records.get(question.id)
        if record is not None:
            data["selectedOption"] = view.to_display(record.selected_option)
            data["correctOption"] = view.correct_index
            data["isCorrect"] = record.is_correct
        return data

    def _selection(self, record: AnswerRecord, *, changed: bool) -> SelectionResult:
        view = self._views[record.question_id]
        return SelectionResult(
            question_id=record.question_id,
            selected_option=view.to_display(record.selected_option),
            correct_option=view.correct_index,
            is_correct=record.is_correct,
            changed=changed,
        )

    def select_option(self, question_id: int, option_index: int) -> SelectionResult:
        question = self._question(question_id)
        existing = self._records.get(question_id)
        if existing is not None:
            # Duplicate UI events are tolerated: a revealed answer never changes
            return self._selection(existing, changed=False)
        view = self._views[question_id]
        if option_index < 0 or option_index >= len(view.options):
            raise ValidationError(f"optionIndex must be 0..{len(view.options) - 1}")
        canonical = view.to_canonical(option_index)
        record = AnswerRecord(
            question_id=question_id,
            selected_option=canonical,
            is_correct=canonical == question.correct_option,
        )
        self._records[question_id] = record
        return self._selection(record, changed=True)

    def advance(self) -> bool:
        """Move past the current question; True once the quiz is completed."""
        if self.completed:
            return True
        if self.current_question.id not in self._records:
            raise ValidationError("Respuesta requerida: selecciona una respuesta antes de continuar.")
        if self.current_index < len(self.questions) - 1:
            self.current_index += 1
            return False
        self.state = QuizState.COMPLETED
        return True

    def submit_all(self, answers: Sequence[SubmittedAnswer]) -> ScoredAttempt:
        """All-at-once variant; answers carry display indexes."""
        if self.completed:
            raise ValidationError("Quiz already completed")
        if len(answers) != self.total_questions:
            raise ValidationError(f"Expected {self.total_questions} answers, got {len(answers)}")
        canonical: List[SubmittedAnswer] = []
        for ans in answers:
            view = self._views.get(ans.question_id)
            if view is None:
                raise NotFoundError(f"Question {ans.question_id} not found")
            if ans.selected_option < 0 or ans.selected_option >= len(view.options):
                raise ValidationError(f"selectedOption must be 0..{len(view.options) - 1} for question {ans.question_id}")
            canonical.append(SubmittedAnswer(question_id=ans.question_id, selected_option=view.to_canonical(ans.selected_option)))
        scored = score_answers(self.questions, canonical)
        self._records = {r.question_id: r for r in scored.answers}
        self.current_index = len(self.questions) - 1
        self.state = QuizState.COMPLETED
        return scored

    def result(self) -> ScoredAttempt:
        if not self.completed:
            raise ValidationError("Quiz is not completed yet")
        records = [self._records[q.id] for q in self.questions]
        return ScoredAttempt(
            score=sum(1 for r in records if r.is_correct),
            total_questions=len(records),
            answers=records,
        )
