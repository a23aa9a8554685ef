import json
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from lingualisten.domain import Question
from lingualisten.errors import ExternalServiceError
from lingualisten.main import create_app
from lingualisten.sessions import SessionRegistry
from lingualisten.settings import Settings
from lingualisten.storage import Store


CORRECT_KEY = [1, 0, 2, 1, 3]

GENERATED = {
    "englishContent": (
        "1. Put on your safety glasses before starting work.\n"
        "2. The supervisor will check your progress at noon.\n"
        "3. Clean your tools at the end of each shift.\n"
        "4. Your day off is on Thursday.\n"
        "5. Bring the wheelbarrow here."
    ),
    "spanishPhoneticTranscription": "1. Put on yor sefti glases bifor starting guork.",
    "spanishQuestions": [
        {
            "question": "Put on your safety glasses before starting work.",
            "options": [
                "Ponte los guantes de seguridad antes de empezar a trabajar.",
                "Ponte los lentes de seguridad antes de empezar a trabajar.",
                "Ponte las gafas de sol antes de empezar a trabajar.",
                "Ponte el casco de seguridad antes de empezar a trabajar.",
            ],
            "correctOptionIndex": 1,
        },
        {
            "question": "The supervisor will check your progress at noon.",
            "options": [
                "El supervisor revisará tu progreso al mediodía.",
                "El supervisor revisará tu progreso a medianoche.",
                "El supervisor revisará tu trabajo mañana.",
                "El supervisor revisará tus herramientas al mediodía.",
            ],
            "correctOptionIndex": 0,
        },
        {
            "question": "Clean your tools at the end of each shift.",
            "options": [
                "Limpia tu camisa al final de cada turno.",
                "Limpia tus herramientas al inicio de cada turno.",
                "Limpia tus herramientas al final de cada turno.",
                "Guarda tus herramientas al final de cada turno.",
            ],
            "correctOptionIndex": 2,
        },
        {
            "question": "Your day off is on Thursday.",
            "options": [
                "Tu día de trabajo es el jueves.",
                "Tu día libre es el jueves.",
                "Tu día libre es el martes.",
                "Tu día libre es el sábado.",
            ],
            "correctOptionIndex": 1,
        },
        {
            "question": "Bring the wheelbarrow here.",
            "options": [
                "Traiga el rastrillo aquí.",
                "Traiga las tijeras aquí.",
                "Traiga la manguera aquí.",
                "Traiga la carretilla aquí.",
            ],
            "correctOptionIndex": 3,
        },
    ],
}


class FakeLLM:
    """Replays canned responses; exceptions in the list are raised instead."""

    configured = True

    def __init__(self, responses: Optional[list] = None) -> None:
        self.responses = list(responses) if responses is not None else [json.dumps(GENERATED)]
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


class FakeSynthesizer:
    def __init__(self, url: Optional[str] = "/audio/test.mp3") -> None:
        self.url = url
        self.texts: List[str] = []

    @property
    def configured(self) -> bool:
        return self.url is not None

    async def synthesize(self, text: str) -> Optional[str]:
        self.texts.append(text)
        return self.url


class FakeProvider:
    def __init__(self, name: str, *, available: bool = True, fail: bool = False) -> None:
        self.name = name
        self.available = available
        self.fail = fail
        self.sent: list = []

    def is_available(self) -> bool:
        return self.available

    async def send(self, report, topic_prompt: str, contact_info: str) -> None:
        if self.fail:
            raise ExternalServiceError(f"{self.name} provider down")
        self.sent.append((report, topic_prompt, contact_info))


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_questions(topic_id: int = 1, key: List[int] = CORRECT_KEY) -> List[Question]:
    items = GENERATED["spanishQuestions"]
    return [
        Question(id=n + 1, topic_id=topic_id, question=items[n]["question"], options=items[n]["options"], correct_option=k)
        for n, k in enumerate(key)
    ]


@pytest.fixture
def config(tmp_path):
    return Settings(
        _env_file=None,
        AUDIO_DIR=str(tmp_path / "audio"),
        GENERATION_RETRY_DELAY_SECONDS=0,
        LISTEN_UNLOCK_SECONDS=3,
    )


@pytest.fixture
def store():
    s = Store()
    yield s
    s.close()


@pytest.fixture
def questions():
    return make_questions()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def email_provider():
    return FakeProvider("email")


@pytest.fixture
def sms_provider():
    return FakeProvider("sms", available=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(config, store, llm, synthesizer, email_provider, sms_provider, clock):
    return create_app(
        config,
        store=store,
        llm=llm,
        synthesizer=synthesizer,
        providers={"email": email_provider, "sms": sms_provider},
        sessions_registry=SessionRegistry(unlock_seconds=3, clock=clock),
    )


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
