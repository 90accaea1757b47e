import json

import pytest
from fastapi.testclient import TestClient

import main
from conftest import FakeProvider
from models.schemas import SUPPORTED_LANGUAGES
from services.exceptions import ProviderConfigurationError


def _reply(messages):
    system = messages[0].content
    content = messages[-1].content
    if system.startswith("You write short participant-facing overviews"):
        return "A short overview."
    if system.startswith("You are conducting an interview"):
        if messages[-1].content == "Please start the interview.":
            return "Welcome! What do you do, how old are you and where do you live?"
        return '{"question": "How much coffee per day?", "type": "scale", "scaleMin": 0, "scaleMax": 5}'
    if content.startswith("You are an expert qualitative researcher"):
        return json.dumps(
            {
                "executive_summary": "Coffee is popular.",
                "key_findings": ["Lots of coffee"],
                "segment_analysis": "All segments alike.",
                "recommended_actions": ["Sell coffee"],
            }
        )
    if content.startswith("You are an expert interviewer analyzing"):
        return "## Overview\nA coffee lover."
    if content.startswith("Translate the following interview analysis report"):
        return json.dumps({"executive_summary": "Traduit", "key_findings": ["Un"]})
    if "Translate" in system or "translator" in system or "Schweizerdeutsch" in system:
        return f"~{content}"
    return ""


@pytest.fixture
def provider():
    return FakeProvider(default=_reply)


@pytest.fixture
def client(tmp_path, monkeypatch, provider):
    monkeypatch.setattr(main.settings, "db_path", tmp_path / "api.db")
    monkeypatch.setattr(main, "create_llm_provider", lambda settings: provider)
    with TestClient(main.app) as test_client:
        yield test_client


def _create_template(client, **overrides):
    body = {"title": "Coffee", "prompt": "Ask about coffee habits.", "duration": 600}
    body.update(overrides)
    response = client.post("/api/templates", json=body)
    assert response.status_code == 200, response.text
    return response.json()


def test_health_and_settings(client):
    health = client.get("/api/health").json()
    assert health["status"] == "ok"
    assert health["provider_ready"] is True

    settings = client.get("/api/settings").json()
    assert settings["supported_languages"] == list(SUPPORTED_LANGUAGES)
    assert "openai_api_key" not in settings


def test_template_lifecycle(client):
    template = _create_template(client)
    assert template["overview"] == "A short overview."
    assert set(template["translations"]) == set(SUPPORTED_LANGUAGES)
    assert template["translations"]["fr"]["title"] == "~Coffee"

    listed = client.get("/api/templates").json()
    assert [t["id"] for t in listed] == [template["id"]]

    updated = client.put(
        f"/api/templates/{template['id']}",
        json={"title": "Coffee 2", "prompt": "Ask more.", "duration": 1200},
    ).json()
    assert updated["id"] == template["id"]
    assert updated["duration"] == 1200
    assert updated["translations"]["ja"]["title"] == "~Coffee 2"

    assert client.delete(f"/api/templates/{template['id']}").status_code == 200
    assert client.get(f"/api/templates/{template['id']}").status_code == 404
    assert client.delete(f"/api/templates/{template['id']}").status_code == 404


def test_invalid_duration_is_rejected(client):
    response = client.post("/api/templates", json={"title": "T", "prompt": "P", "duration": 90})
    assert response.status_code == 422


def test_interview_flow(client):
    template = _create_template(client)

    session = client.post("/api/sessions", json={"template_id": template["id"], "language": "fr"}).json()
    assert session["status"] == "active"
    assert session["language"] == "fr"

    init = client.post(f"/api/sessions/{session['id']}/init").json()
    assert init["message"].startswith("Welcome!")
    assert init["title"] == "~Coffee"
    assert init["duration"] == 600

    reply = client.post(
        f"/api/sessions/{session['id']}/messages",
        json={"message": "Developer, 30, Zurich", "metadata": {"type": "text"}},
    ).json()
    assert reply["message"] == "How much coffee per day?"
    assert reply["metadata"] == {"type": "scale", "scaleMin": 0, "scaleMax": 5}

    history = client.get(f"/api/sessions/{session['id']}/messages").json()
    assert [turn["role"] for turn in history] == ["assistant", "user", "assistant"]
    assert history[2]["metadata"]["type"] == "scale"

    extended = client.patch(f"/api/sessions/{session['id']}", json={"status": "extended"}).json()
    assert extended["status"] == "extended"
    completed = client.patch(f"/api/sessions/{session['id']}", json={"status": "completed"}).json()
    assert completed["status"] == "completed"
    assert completed["ended_at"] is not None

    late = client.post(f"/api/sessions/{session['id']}/messages", json={"message": "one more"})
    assert late.status_code == 409

    assert client.get(f"/api/sessions/{session['id']}/summary").status_code == 404
    summary = client.post(f"/api/sessions/{session['id']}/summary").json()
    assert summary["summary"].startswith("## Overview")
    assert client.get(f"/api/sessions/{session['id']}/summary").json() == summary

    export = client.get(f"/api/sessions/{session['id']}/export")
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/markdown")
    assert "attachment" in export.headers["content-disposition"]
    assert "## Summary" in export.text
    assert "How much coffee per day?" in export.text


def test_reports(client):
    template = _create_template(client)
    session = client.post("/api/sessions", json={"template_id": template["id"]}).json()
    client.post(f"/api/sessions/{session['id']}/init")
    client.post(f"/api/sessions/{session['id']}/messages", json={"message": "I drink coffee"})
    client.patch(f"/api/sessions/{session['id']}", json={"status": "completed"})

    run = client.post("/api/reports")
    assert run.status_code == 200, run.text
    aggregation_id = run.json()["aggregation_id"]

    reports = client.get("/api/reports").json()
    assert [r["status"] for r in reports] == ["completed"]

    english = client.get(f"/api/reports/{aggregation_id}").json()
    assert english["language"] == "en"
    assert english["details"][0]["executive_summary"] == "Coffee is popular."
    assert english["details"][0]["completed_interviews"] == 1

    french = client.get(f"/api/reports/{aggregation_id}", params={"language": "fr"}).json()
    assert french["details"][0]["executive_summary"] == "Traduit"
    assert french["details"][0]["recommended_actions"] == []

    assert client.get(f"/api/reports/{aggregation_id}", params={"language": "xx"}).status_code == 422
    assert client.get("/api/reports/missing").status_code == 404


def test_missing_resources(client):
    assert client.get("/api/sessions/missing").status_code == 404
    assert client.post("/api/sessions/missing/init").status_code == 404
    assert client.post("/api/sessions", json={"template_id": "missing"}).status_code == 404
    assert client.post("/api/sessions/missing/messages", json={"message": ""}).status_code == 422


def test_unconfigured_provider_returns_503(tmp_path, monkeypatch):
    def fail(settings):
        raise ProviderConfigurationError("OPENAI_API_KEY environment variable is not set")

    monkeypatch.setattr(main.settings, "db_path", tmp_path / "api.db")
    monkeypatch.setattr(main, "create_llm_provider", fail)
    with TestClient(main.app) as client:
        assert client.get("/api/health").json()["provider_ready"] is False
        response = client.get("/api/templates")
        assert response.status_code == 503
        assert "OPENAI_API_KEY" in response.json()["detail"]
