from __future__ import annotations
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .domain import Assessment, Question

QUESTION_PLACEHOLDER = "Pregunta no disponible"
OPTION_PLACEHOLDER = "Opción no disponible"
CORRECT_OPTION_PLACEHOLDER = "Opción correcta no disponible"


class ReportItem(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	question_id: int
	question: str
	selected_option: int
	selected_option_text: str
	correct_option_text: str
	is_correct: bool


class Report(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	assessment_id: int
	topic_id: int
	user_name: str
	score: int
	total_questions: int
	percent_score: int
	items: List[ReportItem]


def percent(score: int, total: int) -> int:
	if total <= 0:
		return 0
	# Halves round up
	return (score * 200 + total) // (2 * total)


def _option(question: Optional[Question], index: Optional[int], placeholder: str) -> str:
	if question is None or index is None or index < 0 or index >= len(question.options):
		return placeholder
	return question.options[index]


def build_report(assessment: Assessment, question_lookup: Mapping[int, Question]) -> Report:
	"""Join an assessment's answers with question text for review.

	Pure read. Missing questions or options become placeholders instead of
	failing the whole report.
	"""
	items: List[ReportItem] = []
	for answer in assessment.answers:
		question = question_lookup.get(answer.question_id)
		selected_text = _option(question, answer.selected_option, OPTION_PLACEHOLDER)
		if answer.is_correct:
			correct_text = _option(question, answer.selected_option, CORRECT_OPTION_PLACEHOLDER)
		else:
			correct_text = _option(question, question.correct_option if question else None, CORRECT_OPTION_PLACEHOLDER)
		items.append(
			ReportItem(
				question_id=answer.question_id,
				question=question.question if question else QUESTION_PLACEHOLDER,
				selected_option=answer.selected_option,
				selected_option_text=selected_text,
				correct_option_text=correct_text,
				is_correct=answer.is_correct,
			)
		)
	return Report(
		assessment_id=assessment.id,
		topic_id=assessment.topic_id,
		user_name=assessment.user_name,
		score=assessment.score,
		total_questions=assessment.total_questions,
		percent_score=percent(assessment.score, assessment.total_questions),
		items=items,
	)
