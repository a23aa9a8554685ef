import smtplib

import pytest

from lingualisten.email_service import EmailProvider, render_html, render_subject, render_text
from lingualisten.errors import ExternalServiceError, NotFoundError, ValidationError
from lingualisten.quiz import SubmittedAnswer, score_answers
from lingualisten.report import build_report
from lingualisten.settings import Settings
from lingualisten.sharing import SharingDispatcher

from .conftest import GENERATED, FakeProvider


def _seed(store, selected=(1, 0, 2, 0, 3)):
    topic = store.create_topic("Seguridad en el trabajo", GENERATED["englishContent"])
    questions = store.create_questions(
        topic.id, [(q["question"], q["options"], q["correctOptionIndex"]) for q in GENERATED["spanishQuestions"]]
    )
    scored = score_answers(
        questions, [SubmittedAnswer(question_id=q.id, selected_option=s) for q, s in zip(questions, selected)]
    )
    assessment = store.create_assessment(topic.id, "Ana", scored.score, scored.total_questions, scored.answers)
    return assessment, questions


def test_contact_methods_reflect_provider_availability(store):
    dispatcher = SharingDispatcher(store, {"email": FakeProvider("email"), "sms": FakeProvider("sms", available=False)})
    assert dispatcher.contact_methods() == {"email": True, "sms": False}
    assert SharingDispatcher(store, {}).contact_methods() == {"email": False, "sms": False}


@pytest.mark.parametrize("contact_info", ["", "   "])
async def test_empty_contact_info_is_rejected(store, contact_info):
    assessment, _ = _seed(store)
    email = FakeProvider("email")
    with pytest.raises(ValidationError):
        await SharingDispatcher(store, {"email": email}).share(assessment.id, "email", contact_info)
    assert email.sent == []


async def test_unknown_method_is_rejected(store):
    assessment, _ = _seed(store)
    with pytest.raises(ValidationError):
        await SharingDispatcher(store, {}).share(assessment.id, "fax", "123")


async def test_unknown_assessment(store):
    with pytest.raises(NotFoundError):
        await SharingDispatcher(store, {"email": FakeProvider("email")}).share(42, "email", "ana@example.com")


async def test_unavailable_channel_then_email_succeeds(store):
    assessment, _ = _seed(store)
    email = FakeProvider("email")
    sms = FakeProvider("sms", available=False)
    dispatcher = SharingDispatcher(store, {"email": email, "sms": sms})

    result = await dispatcher.share(assessment.id, "sms", "+15551234567")
    assert result.success is False
    assert result.reason == "unavailable"
    assert store.get_assessment(assessment.id).contact_method == ""

    result = await dispatcher.share(assessment.id, "email", " ana@example.com ")
    assert result.success is True
    report, topic_prompt, contact_info = email.sent[0]
    assert report.score == 4
    assert topic_prompt == "Seguridad en el trabajo"
    assert contact_info == "ana@example.com"
    saved = store.get_assessment(assessment.id)
    assert (saved.contact_method, saved.contact_info) == ("email", "ana@example.com")
    assert saved.answers == assessment.answers


async def test_provider_failure_leaves_assessment_untouched(store):
    assessment, _ = _seed(store)
    dispatcher = SharingDispatcher(store, {"email": FakeProvider("email", fail=True)})
    result = await dispatcher.share(assessment.id, "email", "ana@example.com")
    assert result.success is False
    assert result.reason == "provider_error"
    assert store.get_assessment(assessment.id) == assessment


def test_email_rendering(store):
    assessment, questions = _seed(store)
    report = build_report(assessment, {q.id: q for q in questions})
    assert render_subject(report) == "Tu Reporte de LinguaListen - 4/5 Preguntas Correctas"
    text = render_text(report, "Seguridad en el trabajo")
    assert "Puntuación total: 4/5 (80%)" in text
    assert f"Respuesta correcta: {questions[3].options[1]}" in text
    html = render_html(report, "<b>tema</b>")
    assert "&lt;b&gt;tema&lt;/b&gt;" in html


def test_email_available_only_with_host():
    assert EmailProvider(Settings(_env_file=None, SMTP_HOST=None)).is_available() is False
    assert EmailProvider(Settings(_env_file=None, SMTP_HOST="smtp.example.com")).is_available() is True


class RecordingSMTP:
    """Stands in for smtplib.SMTP / SMTP_SSL and records every call."""

    def __init__(self, log, *, secure=False, fail=None):
        self.log = log
        self.secure = secure
        self.fail = fail

    def __call__(self, host, port, timeout=None):
        self.log.append(("connect", "ssl" if self.secure else "plain", host, port))
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.log.append(("quit",))
        return False

    def ehlo(self):
        self.log.append(("ehlo",))

    def has_extn(self, name):
        return name == "starttls"

    def starttls(self):
        self.log.append(("starttls",))

    def login(self, user, password):
        if self.fail is not None:
            raise self.fail
        self.log.append(("login", user, password))

    def send_message(self, message):
        self.log.append(("send", message["To"], message["Subject"]))


def _smtp_settings(**values):
    return Settings(
        _env_file=None, SMTP_HOST="smtp.example.com", SMTP_PORT=587, SMTP_USER="bot", SMTP_PASS="pw", **values
    )


async def test_email_delivery_uses_starttls_and_login(store, monkeypatch):
    log = []
    monkeypatch.setattr(smtplib, "SMTP", RecordingSMTP(log))
    assessment, questions = _seed(store)
    report = build_report(assessment, {q.id: q for q in questions})
    await EmailProvider(_smtp_settings()).send(report, "Seguridad", "ana@example.com")
    assert log == [
        ("connect", "plain", "smtp.example.com", 587),
        ("ehlo",),
        ("starttls",),
        ("ehlo",),
        ("login", "bot", "pw"),
        ("send", "ana@example.com", "Tu Reporte de LinguaListen - 4/5 Preguntas Correctas"),
        ("quit",),
    ]


async def test_secure_email_delivery_uses_ssl(store, monkeypatch):
    log = []
    monkeypatch.setattr(smtplib, "SMTP_SSL", RecordingSMTP(log, secure=True))
    assessment, questions = _seed(store)
    report = build_report(assessment, {q.id: q for q in questions})
    await EmailProvider(_smtp_settings(SMTP_SECURE=True)).send(report, "Seguridad", "ana@example.com")
    assert log[0] == ("connect", "ssl", "smtp.example.com", 587)
    assert ("starttls",) not in log
    assert log[-2][0] == "send"


async def test_smtp_failure_becomes_failed_share(store, monkeypatch):
    log = []
    refused = smtplib.SMTPAuthenticationError(535, b"authentication failed")
    monkeypatch.setattr(smtplib, "SMTP", RecordingSMTP(log, fail=refused))
    assessment, questions = _seed(store)
    provider = EmailProvider(_smtp_settings())
    report = build_report(assessment, {q.id: q for q in questions})
    with pytest.raises(ExternalServiceError):
        await provider.send(report, "Seguridad", "ana@example.com")

    result = await SharingDispatcher(store, {"email": provider}).share(assessment.id, "email", "ana@example.com")
    assert result.success is False
    assert result.reason == "provider_error"
    assert store.get_assessment(assessment.id).contact_method == ""


async def test_contact_info_with_line_breaks_is_rejected(store):
    assessment, _ = _seed(store)
    email = FakeProvider("email")
    dispatcher = SharingDispatcher(store, {"email": email})
    with pytest.raises(ValidationError):
        await dispatcher.share(assessment.id, "email", "ana@example.com\nBcc: x@example.com")
    assert email.sent == []


async def test_email_header_injection_is_a_provider_error(store):
    assessment, questions = _seed(store)
    report = build_report(assessment, {q.id: q for q in questions})
    with pytest.raises(ExternalServiceError):
        await EmailProvider(_smtp_settings()).send(report, "Seguridad", "ana@example.com\nBcc: x@example.com")
