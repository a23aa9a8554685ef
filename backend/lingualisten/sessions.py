"""
Guided practice sessions.

A session walks one learner through Intake -> Listen -> Quiz -> Results and
owns that attempt's topic, questions and draft answers. Sessions live in a
SessionRegistry held by the application instance rather than in module
globals.
"""

from __future__ import annotations
import logging
import random
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence

from .domain import Assessment, Question, Topic
from .errors import ConflictError, NotFoundError, ValidationError
from .flow import STEP_LABELS, ExplicitPlayback, ListeningGate, Step, StepProgress, TimedUnlock
from .practice import topic_payload
from .quiz import QuizController, ScoredAttempt, SelectionResult, SubmittedAnswer
from .report import Report, build_report
from .storage import Store

logger = logging.getLogger(__name__)


class PracticeSession:
    """
    State of one learner's guided practice.

    Attributes:
        session_id: Unique identifier for this session
        user_name: Name given at intake, stored on the assessment
        steps: Step/progress controller for the four-step flow
        topic: Generated topic, None until content generation succeeds
        questions: Questions of the topic in stored order
        gate: Listening gate for the current topic
        quiz: Answer controller for the current attempt
        assessment: Scored result of the current attempt, once completed
        attempt: Attempt number for the current topic (retries reshuffle)
        generating: True while a content generation request is outstanding
        touched_at: Clock reading of the last registry lookup, used for expiry
    """

    def __init__(
        self,
        session_id: str,
        user_name: str,
        *,
        unlock_seconds: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.session_id = session_id
        self.user_name = user_name
        self.steps = StepProgress(len(Step))
        self.topic: Optional[Topic] = None
        self.questions: List[Question] = []
        self.gate: Optional[ListeningGate] = None
        self.quiz: Optional[QuizController] = None
        self.assessment: Optional[Assessment] = None
        self.attempt = 0
        self.generating = False
        self._unlock_seconds = unlock_seconds
        self._clock = clock
        self._rng = rng or random.Random()
        self.touched_at = clock()

    # ------------------------------------------------------------------
    # Content generation
    # ------------------------------------------------------------------

    def begin_generation(self) -> None:
        if self.generating:
            raise ConflictError("Content generation already in progress")
        self.generating = True

    def end_generation(self) -> None:
        self.generating = False

    def load_topic(self, topic: Topic, questions: Sequence[Question]) -> None:
        """Start a fresh attempt on a newly generated topic and move to listening."""
        self.topic = topic
        self.questions = list(questions)
        # Without server audio the client reads the text aloud and the gate unlocks on a timer
        strategy = ExplicitPlayback() if topic.audio_url else TimedUnlock(self._unlock_seconds)
        self.gate = ListeningGate(strategy, clock=self._clock)
        self.gate.open()
        self.quiz = QuizController(self.questions)
        self.assessment = None
        self.attempt = 1
        self.steps.go_to_step(Step.LISTEN)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _check_can_enter(self, step: int) -> None:
        if step >= Step.LISTEN and self.topic is None:
            raise ValidationError("Primero escribe un tema para generar el contenido.")
        if step >= Step.QUIZ and self.gate is not None:
            self.gate.require_engaged()
        if step >= Step.RESULTS and self.assessment is None:
            raise ValidationError("Responde todas las preguntas antes de ver los resultados.")

    def go_to_step(self, step: int) -> bool:
        if step < 1 or step > self.steps.steps:
            return False
        if step > self.steps.current_step:
            self._check_can_enter(step)
        return self.steps.go_to_step(step)

    def next(self) -> bool:
        return self.go_to_step(self.steps.current_step + 1)

    def prev(self) -> bool:
        return self.go_to_step(self.steps.current_step - 1)

    def reset(self) -> None:
        self.steps.reset()
        self.topic = None
        self.questions = []
        self.gate = None
        self.quiz = None
        self.assessment = None
        self.attempt = 0

    # ------------------------------------------------------------------
    # Listening and quiz
    # ------------------------------------------------------------------

    def mark_played(self) -> None:
        if self.gate is None:
            raise ValidationError("No hay audio para reproducir todavía.")
        self.gate.mark_played()

    def _require_quiz(self) -> QuizController:
        if self.quiz is None:
            raise ValidationError("No hay preguntas todavía.")
        if self.steps.current_step != Step.QUIZ:
            raise ValidationError("Las respuestas solo se aceptan en el paso de preguntas.")
        return self.quiz

    def select_option(self, question_id: int, option_index: int) -> SelectionResult:
        return self._require_quiz().select_option(question_id, option_index)

    def _finish(self, store: Store, scored: ScoredAttempt) -> Assessment:
        if self.topic is None:
            raise ValidationError("No hay un tema para calificar.")
        self.assessment = store.create_assessment(
            self.topic.id, self.user_name, scored.score, scored.total_questions, scored.answers
        )
        self.steps.go_to_step(Step.RESULTS)
        return self.assessment

    def advance(self, store: Store) -> Optional[Assessment]:
        quiz = self._require_quiz()
        if not quiz.advance():
            return None
        if self.assessment is None:
            return self._finish(store, quiz.result())
        return self.assessment

    def submit_all(self, store: Store, answers: Sequence[SubmittedAnswer]) -> Assessment:
        scored = self._require_quiz().submit_all(answers)
        return self._finish(store, scored)

    def retry(self) -> None:
        """New attempt on the same topic with every question's options reshuffled."""
        if self.topic is None or not self.questions:
            raise ValidationError("No hay un tema para repetir.")
        self.quiz = QuizController(self.questions, shuffle=True, rng=self._rng)
        self.assessment = None
        self.attempt += 1
        self.steps.go_to_step(Step.QUIZ)

    def report(self) -> Report:
        if self.assessment is None:
            raise ValidationError("El cuestionario no está terminado.")
        return build_report(self.assessment, {q.id: q for q in self.questions})

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "sessionId": self.session_id,
            "userName": self.user_name,
            "currentStep": self.steps.current_step,
            "stepLabel": STEP_LABELS[Step(self.steps.current_step)],
            "progress": self.steps.progress,
            "isFirstStep": self.steps.is_first_step,
            "isLastStep": self.steps.is_last_step,
            "generating": self.generating,
            "attempt": self.attempt,
            "topic": None,
            "listening": None,
            "quiz": None,
            "assessmentId": self.assessment.id if self.assessment else None,
        }
        if self.topic is not None:
            topic = topic_payload(self.topic, self.questions)
            topic.pop("questions")
            data["topic"] = topic
        if self.gate is not None:
            data["listening"] = {"hasEngaged": self.gate.has_engaged, "strategy": self.gate.strategy.name}
        if self.quiz is not None:
            data["quiz"] = {
                "state": self.quiz.state.value,
                "currentIndex": self.quiz.current_index,
                "currentQuestionId": self.quiz.current_question.id,
                "totalQuestions": self.quiz.total_questions,
                "questions": [self.quiz.public_question(q) for q in self.questions],
            }
        return data


class SessionRegistry:
    """In-memory sessions for one application instance.

    Sessions untouched for ``ttl_seconds`` are purged whenever a new one is
    created; a session with a generation in flight is never purged.
    """

    def __init__(
        self,
        *,
        unlock_seconds: float = 3.0,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._sessions: Dict[str, PracticeSession] = {}
        self._unlock_seconds = unlock_seconds
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._rng = rng

    def create(self, user_name: str) -> PracticeSession:
        self.purge_expired()
        session = PracticeSession(
            uuid.uuid4().hex,
            user_name,
            unlock_seconds=self._unlock_seconds,
            clock=self._clock,
            rng=self._rng,
        )
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> PracticeSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        session.touched_at = self._clock()
        return session

    def delete(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise NotFoundError("Session not found")

    def purge_expired(self) -> int:
        threshold = self._clock() - self._ttl_seconds
        stale = [
            sid for sid, s in self._sessions.items()
            if s.touched_at < threshold and not s.generating
        ]
        for sid in stale:
            del self._sessions[sid]
        if stale:
            logger.info("Purged %d expired practice sessions", len(stale))
        return len(stale)
