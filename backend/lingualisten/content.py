"""
Content generation for listening practice.

Turns a learner's Spanish topic request into English practice statements plus
Spanish multiple-choice comprehension questions, using the LLM client. The
LLM output is checked against a strict schema before anything is stored; a
malformed answer is reported as a ContentFormatError, never cast blindly.
"""

from __future__ import annotations
import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError as SchemaError

from .errors import ContentFormatError, ExternalServiceError, RateLimitError

logger = logging.getLogger(__name__)

OPTIONS_PER_QUESTION = 4

LEVEL_ADJUSTMENTS: Dict[str, str] = {
    "básico": "Use very simple vocabulary, short sentences, and focus on the most essential phrases. Avoid complex grammar.",
    "intermedio": "Use moderate vocabulary. Include slightly longer sentences but keep them clear.",
    "avanzado": "Use more sophisticated vocabulary and longer sentences. Include more complex scenarios.",
}
DEFAULT_LEVEL_ADJUSTMENT = "Use moderate difficulty appropriate for everyday communication."


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


# ============================================================================
# LLM RESPONSE SCHEMA
# ============================================================================

class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=OPTIONS_PER_QUESTION, max_length=OPTIONS_PER_QUESTION)
    correct_option_index: int = Field(alias="correctOptionIndex", ge=0, lt=OPTIONS_PER_QUESTION)


class GeneratedContent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    english_content: str = Field(alias="englishContent", min_length=1)
    questions: List[GeneratedQuestion] = Field(alias="spanishQuestions")
    phonetic: Optional[str] = Field(default=None, alias="spanishPhoneticTranscription")


class TopicRequest(BaseModel):
    topic: str
    job_context: Optional[str] = None
    level: Optional[str] = None


# ============================================================================
# PROMPTS
# ============================================================================

def parse_topic_request(prompt: str, *, job_context: Optional[str] = None, level: Optional[str] = None) -> TopicRequest:
    """Split a multi-line intake prompt into topic, job context and level.

    The intake form may append lines such as ``Tipo de trabajo: jardinería``
    or ``Nivel de inglés: básico`` below the topic. Explicit arguments win
    over values found in the text.
    """
    lines = prompt.split("\n")
    main_topic = lines[0].strip()
    found_job = None
    found_level = None
    for line in lines[1:]:
        lowered = line.lower()
        value = line.split(":", 1)[1].strip() if ":" in line else ""
        if "tipo de trabajo" in lowered or "estudios:" in lowered:
            found_job = value or None
        if "nivel de inglés:" in lowered:
            found_level = value.lower() or None
    return TopicRequest(
        topic=main_topic,
        job_context=(job_context or "").strip() or found_job,
        level=(level or "").strip().lower() or found_level,
    )


def build_generation_prompt(request: TopicRequest, count: int) -> str:
    instruction = (
        "You are helping adult Spanish-speaking learners improve their English. "
        "They have middle school education and need practical, everyday vocabulary."
    )
    if request.job_context:
        instruction += (
            f" The learner works in or studies: {request.job_context}. "
            "Tailor the vocabulary and examples to be relevant to this field."
        )
    if request.level:
        adjustment = LEVEL_ADJUSTMENTS.get(request.level, DEFAULT_LEVEL_ADJUSTMENT)
        instruction += f" The learner's English level is {request.level}. {adjustment}"
    return (
        f"{instruction}\n\n"
        f'Topic request (in Spanish): "{request.topic}"\n\n'
        "Create a JSON response with:\n"
        '1. "englishContent": 5-7 short, practical English statements about this topic, '
        "each 1-2 sentences, simple everyday vocabulary, numbered and separated by newlines.\n"
        f'2. "spanishQuestions": exactly {count} English comprehension exercises. Each presents one English '
        f"sentence from the content as \"question\", followed by \"options\": exactly {OPTIONS_PER_QUESTION} Spanish "
        "translations where only one is correct, and \"correctOptionIndex\" (zero-based).\n"
        "All Spanish options must be grammatically correct, simple middle-school Spanish. Wrong options test "
        "whether the ENGLISH was understood: confused key words, similar sounds (Thursday/Tuesday), "
        "prepositions, tenses, homophones.\n"
        '3. "spanishPhoneticTranscription": the English content written with Spanish spelling patterns '
        "so a Spanish speaker can pronounce it.\n\n"
        "Respond only with valid JSON. No markdown, no extra commentary."
    )


def build_translation_prompt(text: str) -> str:
    return f'Translate this Spanish text to natural-sounding English suitable for workplace communication. Output only the translation: "{text}"'


def _extract_json_object(text: str) -> Dict[str, Any]:
    try:
        return json.loads(text)
    except ValueError:
        pass
    code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if code_block:
        try:
            return json.loads(code_block.group(1))
        except ValueError:
            pass
    first = text.find("{")
    last = text.rfind("}")
    if first != -1 and last != -1 and last > first:
        try:
            return json.loads(text[first : last + 1])
        except ValueError:
            pass
    raise ContentFormatError("LLM did not return valid JSON.")


def parse_generated_content(raw: str, count: int) -> GeneratedContent:
    data = _extract_json_object(raw)
    if not isinstance(data, dict):
        raise ContentFormatError("LLM JSON is not an object")
    try:
        content = GeneratedContent.model_validate(data)
    except SchemaError as exc:
        raise ContentFormatError(f"Invalid content format from LLM: {exc.error_count()} error(s)") from exc
    if len(content.questions) != count:
        raise ContentFormatError(f"Expected {count} questions, got {len(content.questions)}")
    return content


# ============================================================================
# GENERATOR
# ============================================================================

class ContentGenerator:
    def __init__(self, llm: TextGenerator, *, question_count: int = 5, retry_delay: float = 2.0) -> None:
        self.llm = llm
        self.question_count = question_count
        self.retry_delay = retry_delay

    async def generate(self, prompt: str, *, job_context: Optional[str] = None, level: Optional[str] = None) -> GeneratedContent:
        request = parse_topic_request(prompt, job_context=job_context, level=level)
        llm_prompt = build_generation_prompt(request, self.question_count)
        try:
            raw = await self.llm.generate(llm_prompt)
        except RateLimitError:
            # Exactly one retry for rate limiting, then surface the error
            logger.warning("Content generation rate limited; retrying in %.1fs", self.retry_delay)
            await asyncio.sleep(self.retry_delay)
            raw = await self.llm.generate(llm_prompt)
        return parse_generated_content(raw, self.question_count)

    async def translate(self, text: str) -> str:
        translated = (await self.llm.generate(build_translation_prompt(text))).strip()
        if not translated:
            raise ExternalServiceError("Empty translation from LLM")
        return translated.strip('"')
