"""
Guided practice flow.

Drives a PracticeSession through Intake -> Listen -> Quiz -> Results on the
server, so the answer key never leaves it before an answer is locked in.
Every endpoint returns the session snapshot (or the item it acted on) so the
client can render progress without keeping its own copy of the state.
"""

from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from ..content import ContentGenerator
from ..dependencies import get_generator, get_sessions, get_store, get_synthesizer
from ..practice import assessment_payload, create_topic
from ..quiz import SubmittedAnswer
from ..sessions import SessionRegistry
from ..storage import Store
from ..tts import AudioSynthesizer

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


class StartRequest(BaseModel):
    userName: str = Field(min_length=1)


class TopicRequest(BaseModel):
    prompt: str = Field(min_length=3, max_length=500)
    jobContext: Optional[str] = Field(default=None, max_length=200)
    level: Optional[str] = Field(default=None, max_length=32)


class SelectRequest(BaseModel):
    questionId: int
    optionIndex: int


class AnswerIn(BaseModel):
    questionId: int
    selectedOption: int


class SubmitRequest(BaseModel):
    answers: List[AnswerIn]


@router.post("", status_code=201)
def start_session(req: StartRequest, sessions: SessionRegistry = Depends(get_sessions)):
    return sessions.create(req.userName.strip()).snapshot()


@router.get("/{session_id}")
def get_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    return sessions.get(session_id).snapshot()


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    sessions.delete(session_id)
    return Response(status_code=204)


@router.post("/{session_id}/topic")
async def generate_topic(
    session_id: str,
    req: TopicRequest,
    sessions: SessionRegistry = Depends(get_sessions),
    generator: ContentGenerator = Depends(get_generator),
    synthesizer: AudioSynthesizer = Depends(get_synthesizer),
    store: Store = Depends(get_store),
):
    """
    Generate content for the session's current attempt.

    Only one generation may be outstanding per session; a second request
    while the first is still running is refused with 409. On failure the
    session keeps whatever topic and answers it had before.
    """
    session = sessions.get(session_id)
    session.begin_generation()
    try:
        topic, questions = await create_topic(
            generator, synthesizer, store, req.prompt, job_context=req.jobContext, level=req.level
        )
    finally:
        session.end_generation()
    session.load_topic(topic, questions)
    return session.snapshot()


@router.post("/{session_id}/steps/{step}")
def go_to_step(session_id: str, step: int, sessions: SessionRegistry = Depends(get_sessions)):
    session = sessions.get(session_id)
    session.go_to_step(step)
    return session.snapshot()


@router.post("/{session_id}/next")
def next_step(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    session = sessions.get(session_id)
    session.next()
    return session.snapshot()


@router.post("/{session_id}/prev")
def prev_step(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    session = sessions.get(session_id)
    session.prev()
    return session.snapshot()


@router.post("/{session_id}/reset")
def reset_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    session = sessions.get(session_id)
    session.reset()
    return session.snapshot()


@router.post("/{session_id}/listen/play")
def mark_played(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    session = sessions.get(session_id)
    session.mark_played()
    return session.snapshot()


@router.post("/{session_id}/answers")
def select_option(session_id: str, req: SelectRequest, sessions: SessionRegistry = Depends(get_sessions)):
    result = sessions.get(session_id).select_option(req.questionId, req.optionIndex)
    return {
        "questionId": result.question_id,
        "selectedOption": result.selected_option,
        "correctOption": result.correct_option,
        "isCorrect": result.is_correct,
        "changed": result.changed,
    }


@router.post("/{session_id}/advance")
def advance(session_id: str, sessions: SessionRegistry = Depends(get_sessions), store: Store = Depends(get_store)):
    session = sessions.get(session_id)
    assessment = session.advance(store)
    data = session.snapshot()
    data["result"] = assessment_payload(assessment) if assessment else None
    return data


@router.post("/{session_id}/submit")
def submit_all(
    session_id: str,
    req: SubmitRequest,
    sessions: SessionRegistry = Depends(get_sessions),
    store: Store = Depends(get_store),
):
    session = sessions.get(session_id)
    answers = [SubmittedAnswer(question_id=a.questionId, selected_option=a.selectedOption) for a in req.answers]
    assessment = session.submit_all(store, answers)
    return assessment_payload(assessment)


@router.post("/{session_id}/retry")
def retry(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    session = sessions.get(session_id)
    session.retry()
    return session.snapshot()


@router.get("/{session_id}/report")
def report(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    return sessions.get(session_id).report().model_dump(by_alias=True)
