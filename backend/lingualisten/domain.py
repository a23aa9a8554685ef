from __future__ import annotations
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class Topic(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: int
	prompt: str
	content: str
	phonetic: Optional[str] = None
	# None when no server-side audio exists; the client falls back to speech synthesis
	audio_url: Optional[str] = None
	created_at: int


class Question(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: int
	topic_id: int
	question: str
	options: List[str]
	correct_option: int

	def public(self) -> dict:
		# Never include correct_option here
		return {"id": self.id, "question": self.question, "options": list(self.options)}


class AnswerRecord(BaseModel):
	model_config = ConfigDict(frozen=True)

	question_id: int
	selected_option: int
	is_correct: bool


class Assessment(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: int
	topic_id: int
	user_name: str
	score: int
	total_questions: int
	answers: List[AnswerRecord]
	contact_info: str = ""
	contact_method: str = ""
	created_at: int
