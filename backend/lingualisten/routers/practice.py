from __future__ import annotations
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..content import ContentGenerator
from ..dependencies import get_dispatcher, get_generator, get_store, get_synthesizer
from ..practice import assessment_payload, assessment_report, create_topic, submit_answers, topic_payload
from ..quiz import SubmittedAnswer
from ..sharing import SharingDispatcher
from ..storage import Store
from ..tts import AudioSynthesizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["practice"])


class GenerateContentRequest(BaseModel):
    prompt: str = Field(min_length=3, max_length=500)
    userName: str = Field(min_length=1)
    jobContext: Optional[str] = Field(default=None, max_length=200)
    level: Optional[str] = Field(default=None, max_length=32)


class AnswerIn(BaseModel):
    questionId: int
    selectedOption: int


class SubmitAnswersRequest(BaseModel):
    topicId: int
    userName: str
    answers: List[AnswerIn]


class ShareResultsRequest(BaseModel):
    assessmentId: int
    contactMethod: Literal["email", "sms"]
    contactInfo: str


class ProcessVoiceRequest(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


@router.get("/contact-methods")
def contact_methods(dispatcher: SharingDispatcher = Depends(get_dispatcher)):
    return dispatcher.contact_methods()


@router.post("/generate-content")
async def generate_content(
    req: GenerateContentRequest,
    generator: ContentGenerator = Depends(get_generator),
    synthesizer: AudioSynthesizer = Depends(get_synthesizer),
    store: Store = Depends(get_store),
):
    topic, questions = await create_topic(
        generator, synthesizer, store, req.prompt, job_context=req.jobContext, level=req.level
    )
    # The answer key stays on the server; scoring happens in /submit-answers
    return topic_payload(topic, questions)


@router.post("/process-voice")
async def process_voice(req: ProcessVoiceRequest, generator: ContentGenerator = Depends(get_generator)):
    return {"text": await generator.translate(req.text)}


@router.post("/submit-answers")
def submit(req: SubmitAnswersRequest, store: Store = Depends(get_store)):
    answers = [SubmittedAnswer(question_id=a.questionId, selected_option=a.selectedOption) for a in req.answers]
    assessment = submit_answers(store, req.topicId, req.userName, answers)
    return assessment_payload(assessment)


@router.post("/share-results")
async def share_results(req: ShareResultsRequest, dispatcher: SharingDispatcher = Depends(get_dispatcher)):
    result = await dispatcher.share(req.assessmentId, req.contactMethod, req.contactInfo)
    body = {"success": result.success, "message": result.message}
    if result.success:
        return body
    status = 503 if result.reason == "unavailable" else 502
    return JSONResponse(status_code=status, content=body)


@router.get("/assessments/{assessment_id}/report")
def get_report(assessment_id: int, store: Store = Depends(get_store)):
    return assessment_report(store, assessment_id).model_dump(by_alias=True)
