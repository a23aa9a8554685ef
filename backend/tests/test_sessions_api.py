import pytest

from lingualisten.errors import ExternalServiceError

from .conftest import CORRECT_KEY


@pytest.fixture
def session_id(client):
    response = client.post("/api/sessions", json={"userName": "Ana"})
    assert response.status_code == 201
    return response.json()["sessionId"]


def _topic(client, session_id):
    response = client.post(f"/api/sessions/{session_id}/topic", json={"prompt": "Trabajo en jardines"})
    assert response.status_code == 200, response.text
    return response.json()


def _to_quiz(client, session_id):
    _topic(client, session_id)
    client.post(f"/api/sessions/{session_id}/listen/play")
    data = client.post(f"/api/sessions/{session_id}/next").json()
    assert data["currentStep"] == 3
    return data


def _answer(client, session_id, question_id, option):
    return client.post(f"/api/sessions/{session_id}/answers", json={"questionId": question_id, "optionIndex": option})


def test_new_session_starts_at_topic_step(client, session_id):
    data = client.get(f"/api/sessions/{session_id}").json()
    assert data["currentStep"] == 1
    assert data["stepLabel"] == "Tema"
    assert data["progress"] == [1]
    assert data["topic"] is None
    assert client.get("/api/sessions/missing").status_code == 404


def test_cannot_skip_ahead_without_a_topic(client, session_id):
    assert client.post(f"/api/sessions/{session_id}/next").status_code == 400
    # Out of range steps are ignored
    data = client.post(f"/api/sessions/{session_id}/steps/9").json()
    assert data["currentStep"] == 1


def test_full_guided_flow(client, session_id, store):
    data = _topic(client, session_id)
    assert data["currentStep"] == 2
    assert data["attempt"] == 1
    assert data["listening"] == {"hasEngaged": False, "strategy": "playback"}
    assert "correctOption" not in data["quiz"]["questions"][0]

    # Gate holds until the audio is played
    assert client.post(f"/api/sessions/{session_id}/next").status_code == 400
    client.post(f"/api/sessions/{session_id}/listen/play")
    data = client.post(f"/api/sessions/{session_id}/next").json()
    assert data["currentStep"] == 3
    assert data["progress"] == [1, 2, 3]

    selected = [1, 0, 2, 0, 3]
    result = None
    for question, option in zip(data["quiz"]["questions"], selected):
        picked = _answer(client, session_id, question["id"], option).json()
        assert picked["changed"] is True
        result = client.post(f"/api/sessions/{session_id}/advance").json()

    assert result["currentStep"] == 4
    assert result["quiz"]["state"] == "completed"
    assert result["result"]["score"] == 4
    assert store.get_assessment(result["assessmentId"]).score == 4

    report = client.get(f"/api/sessions/{session_id}/report").json()
    assert report["score"] == 4
    assert [item["isCorrect"] for item in report["items"]] == [True, True, True, False, True]


def test_without_audio_the_gate_unlocks_on_a_timer(client, session_id, synthesizer, clock):
    synthesizer.url = None
    data = _topic(client, session_id)
    assert data["topic"]["audioFallback"] == "speech-synthesis"
    assert data["listening"]["strategy"] == "timer"
    assert client.post(f"/api/sessions/{session_id}/next").status_code == 400
    clock.now += 3
    assert client.post(f"/api/sessions/{session_id}/next").json()["currentStep"] == 3


def test_answers_are_locked_once_revealed(client, session_id):
    data = _to_quiz(client, session_id)
    first = data["quiz"]["questions"][0]["id"]
    picked = _answer(client, session_id, first, 0).json()
    assert picked == {"questionId": first, "selectedOption": 0, "correctOption": 1, "isCorrect": False, "changed": True}
    again = _answer(client, session_id, first, 1).json()
    assert again["selectedOption"] == 0
    assert again["changed"] is False
    state = client.get(f"/api/sessions/{session_id}").json()["quiz"]["questions"][0]
    assert state["state"] == "revealed"
    assert state["correctOption"] == 1


def test_advance_requires_an_answer(client, session_id):
    _to_quiz(client, session_id)
    response = client.post(f"/api/sessions/{session_id}/advance")
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Respuesta requerida")


def test_answers_outside_quiz_step_are_rejected(client, session_id):
    _to_quiz(client, session_id)
    client.post(f"/api/sessions/{session_id}/prev")
    assert _answer(client, session_id, 1, 0).status_code == 400


def test_going_back_keeps_answers(client, session_id):
    data = _to_quiz(client, session_id)
    first = data["quiz"]["questions"][0]["id"]
    _answer(client, session_id, first, 1)
    client.post(f"/api/sessions/{session_id}/prev")
    data = client.post(f"/api/sessions/{session_id}/next").json()
    assert data["quiz"]["questions"][0]["selectedOption"] == 1


def test_submit_all_and_retry_reshuffles(client, session_id, store):
    data = _to_quiz(client, session_id)
    ids = [q["id"] for q in data["quiz"]["questions"]]

    bad = client.post(f"/api/sessions/{session_id}/submit", json={"answers": [{"questionId": ids[0], "selectedOption": 1}]})
    assert bad.status_code == 400
    assert store.get_assessment(1) is None

    answers = [{"questionId": i, "selectedOption": k} for i, k in zip(ids, CORRECT_KEY)]
    result = client.post(f"/api/sessions/{session_id}/submit", json={"answers": answers}).json()
    assert result["score"] == 5

    data = client.post(f"/api/sessions/{session_id}/retry").json()
    assert data["attempt"] == 2
    assert data["currentStep"] == 3
    assert data["assessmentId"] is None

    # Pick the correct text in whatever order it is now displayed
    stored = {q.id: q for q in store.get_questions_by_topic_id(data["topic"]["topicId"])}
    answers = []
    for question in data["quiz"]["questions"]:
        original = stored[question["id"]]
        correct_text = original.options[original.correct_option]
        answers.append({"questionId": question["id"], "selectedOption": question["options"].index(correct_text)})
    retried = client.post(f"/api/sessions/{session_id}/submit", json={"answers": answers}).json()
    assert retried["score"] == 5
    assert [a["selectedOption"] for a in retried["answers"]] == CORRECT_KEY


def test_concurrent_generation_is_refused(client, app, session_id, llm):
    app.state.sessions.get(session_id).begin_generation()
    response = client.post(f"/api/sessions/{session_id}/topic", json={"prompt": "Cocina"})
    assert response.status_code == 409
    assert llm.prompts == []


def test_failed_generation_keeps_previous_topic(client, session_id, llm):
    first = _topic(client, session_id)
    llm.responses = [ExternalServiceError("down")]
    assert client.post(f"/api/sessions/{session_id}/topic", json={"prompt": "Cocina"}).status_code == 502
    data = client.get(f"/api/sessions/{session_id}").json()
    assert data["topic"]["topicId"] == first["topic"]["topicId"]
    assert data["generating"] is False


def test_reset_returns_to_start(client, session_id):
    _to_quiz(client, session_id)
    data = client.post(f"/api/sessions/{session_id}/reset").json()
    assert data["currentStep"] == 1
    assert data["progress"] == [1]
    assert data["quiz"] is None


def test_delete_session(client, session_id):
    assert client.delete(f"/api/sessions/{session_id}").status_code == 204
    assert client.get(f"/api/sessions/{session_id}").status_code == 404
    assert client.delete(f"/api/sessions/{session_id}").status_code == 404


def test_results_step_is_last(client, session_id):
    data = _to_quiz(client, session_id)
    assert data["isFirstStep"] is False
    assert data["isLastStep"] is False
    answers = [{"questionId": q["id"], "selectedOption": k} for q, k in zip(data["quiz"]["questions"], CORRECT_KEY)]
    client.post(f"/api/sessions/{session_id}/submit", json={"answers": answers})
    data = client.get(f"/api/sessions/{session_id}").json()
    assert data["currentStep"] == 4
    assert data["isLastStep"] is True
