from __future__ import annotations
import time
from enum import IntEnum
from typing import Callable, List, Optional, Protocol

from .errors import ValidationError


class Step(IntEnum):
	TOPIC = 1
	LISTEN = 2
	QUIZ = 3
	RESULTS = 4


STEP_LABELS = {Step.TOPIC: "Tema", Step.LISTEN: "Escuchar", Step.QUIZ: "Responder", Step.RESULTS: "Resultados"}


class StepProgress:
	"""Current position in a fixed N-step sequence plus every step ever visited.

	Visited steps only drive the progress indicator; they never gate moves.
	"""

	def __init__(self, steps: int = len(Step)) -> None:
		self.steps = steps
		self.current_step = 1
		self.visited = {1}

	def go_to_step(self, step: int) -> bool:
		if step < 1 or step > self.steps:
			return False
		self.current_step = step
		self.visited.add(step)
		return True

	def next(self) -> bool:
		return self.go_to_step(self.current_step + 1)

	def prev(self) -> bool:
		return self.go_to_step(self.current_step - 1)

	def reset(self) -> None:
		self.current_step = 1
		self.visited = {1}

	@property
	def is_first_step(self) -> bool:
		return self.current_step == 1

	@property
	def is_last_step(self) -> bool:
		return self.current_step == self.steps

	@property
	def progress(self) -> List[int]:
		return sorted(self.visited)


# Listening gate


class EngagementStrategy(Protocol):
	name: str

	def engaged(self, gate: "ListeningGate", now: float) -> bool: ...


class ExplicitPlayback:
	name = "playback"

	def engaged(self, gate: "ListeningGate", now: float) -> bool:
		return gate.played


class TimedUnlock:
	"""Unlocks after a fixed delay so a silent audio failure cannot trap the learner."""

	name = "timer"

	def __init__(self, seconds: float = 3.0) -> None:
		self.seconds = seconds

	def engaged(self, gate: "ListeningGate", now: float) -> bool:
		if gate.played:
			return True
		return gate.opened_at is not None and now - gate.opened_at >= self.seconds


class ListeningGate:
	def __init__(self, strategy: Optional[EngagementStrategy] = None, *, clock: Callable[[], float] = time.monotonic) -> None:
		self.strategy: EngagementStrategy = strategy or ExplicitPlayback()
		self._clock = clock
		self.played = False
		self.opened_at: Optional[float] = None

	def open(self) -> None:
		if self.opened_at is None:
			self.opened_at = self._clock()

	def mark_played(self) -> None:
		self.open()
		self.played = True

	@property
	def has_engaged(self) -> bool:
		return self.strategy.engaged(self, self._clock())

	def require_engaged(self) -> None:
		if not self.has_engaged:
			raise ValidationError("Reproduce el audio antes de continuar.")
