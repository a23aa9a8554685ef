from __future__ import annotations
import logging
from typing import List, Optional, Sequence, Tuple

from .content import ContentGenerator
from .domain import Assessment, Question, Topic
from .errors import NotFoundError
from .quiz import SubmittedAnswer, score_answers
from .report import Report, build_report
from .storage import Store
from .tts import AudioSynthesizer

logger = logging.getLogger(__name__)

SPEECH_SYNTHESIS_FALLBACK = "speech-synthesis"


async def create_topic(
	generator: ContentGenerator,
	synthesizer: AudioSynthesizer,
	store: Store,
	prompt: str,
	*,
	job_context: Optional[str] = None,
	level: Optional[str] = None,
) -> Tuple[Topic, List[Question]]:
	generated = await generator.generate(prompt, job_context=job_context, level=level)
	audio_url = await synthesizer.synthesize(generated.english_content)
	topic = store.create_topic(
		prompt,
		generated.english_content,
		phonetic=generated.phonetic,
		audio_url=audio_url,
	)
	questions = store.create_questions(
		topic.id,
		[(q.question, q.options, q.correct_option_index) for q in generated.questions],
	)
	logger.info("Created topic %s with %d questions (audio: %s)", topic.id, len(questions), audio_url or "fallback")
	return topic, questions


def topic_payload(topic: Topic, questions: Sequence[Question]) -> dict:
	return {
		"topicId": topic.id,
		"content": topic.content,
		"phonetic": topic.phonetic,
		"audioUrl": topic.audio_url,
		"audioFallback": None if topic.audio_url else SPEECH_SYNTHESIS_FALLBACK,
		"questions": [q.public() for q in questions],
	}


def assessment_payload(assessment: Assessment) -> dict:
	return {
		"assessmentId": assessment.id,
		"userName": assessment.user_name,
		"score": assessment.score,
		"totalQuestions": assessment.total_questions,
		"answers": [
			{"questionId": a.question_id, "selectedOption": a.selected_option, "isCorrect": a.is_correct}
			for a in assessment.answers
		],
	}


def submit_answers(store: Store, topic_id: int, user_name: str, answers: Sequence[SubmittedAnswer]) -> Assessment:
	found = store.get_topic_with_questions(topic_id)
	if found is None:
		raise NotFoundError("Topic not found")
	_, questions = found
	scored = score_answers(questions, answers)
	assessment = store.create_assessment(topic_id, user_name, scored.score, scored.total_questions, scored.answers)
	logger.info("Assessment %s: %s scored %d/%d", assessment.id, user_name, scored.score, scored.total_questions)
	return assessment


def assessment_report(store: Store, assessment_id: int) -> Report:
	assessment = store.get_assessment(assessment_id)
	if assessment is None:
		raise NotFoundError("Assessment not found")
	questions = {q.id: q for q in store.get_questions_by_topic_id(assessment.topic_id)}
	return build_report(assessment, questions)
