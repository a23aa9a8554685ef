from __future__ import annotations
from sqlalchemy import Column, Integer, String, Text, JSON, ForeignKey
from .db import Base


# All three tables are append-only; sqlite_autoincrement keeps ids strictly increasing


class TopicRow(Base):
	__tablename__ = "topics"
	__table_args__ = {"sqlite_autoincrement": True}
	id = Column(Integer, primary_key=True, autoincrement=True)
	prompt = Column(Text, nullable=False)
	content = Column(Text, nullable=False)
	phonetic = Column(Text, nullable=True)
	audio_url = Column(String(512), nullable=True)
	created_at = Column(Integer, nullable=False)


class QuestionRow(Base):
	__tablename__ = "questions"
	__table_args__ = {"sqlite_autoincrement": True}
	id = Column(Integer, primary_key=True, autoincrement=True)
	topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False, index=True)
	question = Column(Text, nullable=False)
	options = Column(JSON, nullable=False)  # ordered list of strings
	correct_option = Column(Integer, nullable=False)


class AssessmentRow(Base):
	__tablename__ = "assessments"
	__table_args__ = {"sqlite_autoincrement": True}
	id = Column(Integer, primary_key=True, autoincrement=True)
	topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False, index=True)
	user_name = Column(String(256), nullable=False)
	contact_info = Column(String(256), nullable=False, default="")
	contact_method = Column(String(16), nullable=False, default="")
	score = Column(Integer, nullable=False)
	total_questions = Column(Integer, nullable=False)
	answers = Column(JSON, nullable=False)  # list of {question_id, selected_option, is_correct}
	created_at = Column(Integer, nullable=False)
