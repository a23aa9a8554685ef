from __future__ import annotations
import time
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.engine import Engine

from .db import Base, make_engine, make_session_factory
from .domain import AnswerRecord, Assessment, Question, Topic
from .errors import NotFoundError
from .models import AssessmentRow, QuestionRow, TopicRow


def _now() -> int:
	return int(time.time())


def _topic(row: TopicRow) -> Topic:
	return Topic(
		id=row.id,
		prompt=row.prompt,
		content=row.content,
		phonetic=row.phonetic,
		audio_url=row.audio_url,
		created_at=row.created_at,
	)


def _question(row: QuestionRow) -> Question:
	return Question(
		id=row.id,
		topic_id=row.topic_id,
		question=row.question,
		options=list(row.options),
		correct_option=row.correct_option,
	)


def _assessment(row: AssessmentRow) -> Assessment:
	return Assessment(
		id=row.id,
		topic_id=row.topic_id,
		user_name=row.user_name,
		score=row.score,
		total_questions=row.total_questions,
		answers=[AnswerRecord(**a) for a in row.answers],
		contact_info=row.contact_info or "",
		contact_method=row.contact_method or "",
		created_at=row.created_at,
	)


class Store:
	"""Append-only persistence for topics, questions and assessments.

	One instance is built when the app starts and closed at shutdown. Tests
	build their own, each with a private in-memory database.
	"""

	def __init__(self, database_url: Optional[str] = None, *, engine: Optional[Engine] = None) -> None:
		self.engine = engine or make_engine(database_url)
		self._session_factory = make_session_factory(self.engine)
		Base.metadata.create_all(bind=self.engine)

	def close(self) -> None:
		self.engine.dispose()

	# Topics

	def create_topic(
		self,
		prompt: str,
		content: str,
		*,
		phonetic: Optional[str] = None,
		audio_url: Optional[str] = None,
		created_at: Optional[int] = None,
	) -> Topic:
		row = TopicRow(
			prompt=prompt,
			content=content,
			phonetic=phonetic,
			audio_url=audio_url,
			created_at=created_at if created_at is not None else _now(),
		)
		with self._session_factory() as db, db.begin():
			db.add(row)
		return _topic(row)

	def get_topic(self, topic_id: int) -> Optional[Topic]:
		with self._session_factory() as db:
			row = db.get(TopicRow, topic_id)
			return _topic(row) if row else None

	def get_topic_with_questions(self, topic_id: int) -> Optional[Tuple[Topic, List[Question]]]:
		topic = self.get_topic(topic_id)
		if topic is None:
			return None
		return topic, self.get_questions_by_topic_id(topic_id)

	# Questions

	def create_questions(self, topic_id: int, items: Iterable[Tuple[str, Sequence[str], int]]) -> List[Question]:
		rows = [
			QuestionRow(topic_id=topic_id, question=text, options=list(options), correct_option=correct)
			for text, options, correct in items
		]
		with self._session_factory() as db, db.begin():
			db.add_all(rows)
		return [_question(r) for r in rows]

	def get_questions_by_topic_id(self, topic_id: int) -> List[Question]:
		with self._session_factory() as db:
			rows = db.query(QuestionRow).filter(QuestionRow.topic_id == topic_id).order_by(QuestionRow.id).all()
			return [_question(r) for r in rows]

	# Assessments

	def create_assessment(
		self,
		topic_id: int,
		user_name: str,
		score: int,
		total_questions: int,
		answers: Sequence[AnswerRecord],
		*,
		created_at: Optional[int] = None,
	) -> Assessment:
		row = AssessmentRow(
			topic_id=topic_id,
			user_name=user_name,
			score=score,
			total_questions=total_questions,
			answers=[a.model_dump() for a in answers],
			contact_info="",
			contact_method="",
			created_at=created_at if created_at is not None else _now(),
		)
		with self._session_factory() as db, db.begin():
			db.add(row)
		return _assessment(row)

	def get_assessment(self, assessment_id: int) -> Optional[Assessment]:
		with self._session_factory() as db:
			row = db.get(AssessmentRow, assessment_id)
			return _assessment(row) if row else None

	def record_share(self, assessment_id: int, contact_method: str, contact_info: str) -> Assessment:
		# Sharing metadata is the only part of an assessment that may change
		with self._session_factory() as db, db.begin():
			row = db.get(AssessmentRow, assessment_id)
			if row is None:
				raise NotFoundError("Assessment not found")
			row.contact_method = contact_method
			row.contact_info = contact_info
		return _assessment(row)
