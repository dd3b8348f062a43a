"""Tests for the FastAPI endpoints."""

import uuid
from collections import OrderedDict
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

import api
from api import app


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def session_id():
    return f"test-{uuid.uuid4()}"


class TestHealthAndRules:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["rules"] > 0

    def test_rules(self, client):
        r = client.get("/rules")
        assert r.status_code == 200
        data = r.json()
        assert data["rules"][0]["name"] == "first_name"
        assert data["rules"][0]["category"] == "identité"


class TestExtract:
    def test_extract(self, client):
        r = client.post("/extract", json={"text": "Je m'appelle Marie et j'ai 29 ans"})
        assert r.status_code == 200
        data = r.json()
        assert data["count"] == 2
        assert data["facts"][1]["content"] == "L'utilisateur a 29 ans"
        assert data["facts"][1]["source"] == "regex"

    def test_missing_text_422(self, client):
        r = client.post("/extract", json={})
        assert r.status_code == 422


class TestClassify:
    def test_classify(self, client):
        r = client.post("/classify", json={
            "text": "En fait j'habite à Marseille",
            "history": ["J'habite à Lyon"],
            "memory": [{"content": "L'utilisateur habite à Lyon", "category": "localisation"}],
        })
        assert r.status_code == 200
        changes = r.json()["changes"]
        assert changes[0]["source"] == "correction"
        assert changes[0]["old_content"] == "J'habite à Lyon"

    def test_invalid_memory_category_400(self, client):
        r = client.post("/classify", json={
            "text": "En fait j'habite à Marseille",
            "memory": [{"content": "x", "category": "astrologie"}],
        })
        assert r.status_code == 400


class TestContradictions:
    def test_age(self, client):
        r = client.post("/contradictions", json={
            "fact": "En fait j'ai 30 ans",
            "memory": [{"content": "L'utilisateur a 29 ans", "category": "identité"}],
        })
        assert r.status_code == 200
        data = r.json()
        assert data["count"] == 1
        assert data["contradictions"][0]["severity"] == pytest.approx(0.9)

    def test_invalid_category_400(self, client):
        r = client.post("/contradictions", json={"fact": "J'ai 30 ans", "category": "bogus"})
        assert r.status_code == 400


class TestConsolidate:
    def test_consolidate(self, client):
        r = client.post("/consolidate", json={"candidates": [
            {"content": "L'utilisateur habite à Lyon", "category": "localisation", "confidence": 0.95},
            {"content": "L'utilisateur habite à Lyon", "category": "localisation", "confidence": 0.8},
            {"content": "L'utilisateur aime le jazz", "category": "préférences", "confidence": 0.55},
        ]})
        assert r.status_code == 200
        data = r.json()
        assert len(data["facts"]) == 1
        assert data["stats"]["duplicates"] == 1
        assert data["stats"]["low_confidence"] == 1

    def test_invalid_source_400(self, client):
        r = client.post("/consolidate", json={"candidates": [
            {"content": "x", "category": "général", "confidence": 0.9, "source": "rumeur"},
        ]})
        assert r.status_code == 400

    def test_out_of_range_confidence_422(self, client):
        r = client.post("/consolidate", json={"candidates": [
            {"content": "x", "category": "général", "confidence": 1.5},
        ]})
        assert r.status_code == 422


class TestProcess:
    def test_process(self, client, session_id):
        r = client.post("/process", json={
            "text": "En fait j'ai 30 ans",
            "history": ["J'ai 29 ans"],
            "memory": [{"content": "L'utilisateur a 29 ans", "category": "identité"}],
            "session_id": session_id,
        })
        assert r.status_code == 200
        data = r.json()
        assert data["facts"][0]["content"] == "L'utilisateur a 30 ans"
        assert len(data["contradictions"]) == 1
        assert data["run"]["status"] == "completed"


class TestSuggestions:
    def test_suggestions_and_mark_used(self, client, session_id):
        body = {"utterances": ["J'adore la pizza"], "session_id": session_id}
        first = client.post("/suggestions", json=body).json()["suggestions"]
        assert first

        suggestion_id = first[0]["id"]
        r = client.post(f"/suggestions/{quote(suggestion_id, safe='')}/used", params={"session_id": session_id})
        assert r.status_code == 200
        assert r.json()["id"] == suggestion_id

        second = client.post("/suggestions", json=body).json()["suggestions"]
        assert suggestion_id not in [s["id"] for s in second]

    def test_sessions_are_isolated(self, client, session_id):
        body = {"utterances": ["J'adore la pizza"], "session_id": session_id}
        suggestion_id = client.post("/suggestions", json=body).json()["suggestions"][0]["id"]
        client.post(f"/suggestions/{quote(suggestion_id, safe='')}/used", params={"session_id": session_id})

        other = {"utterances": ["J'adore la pizza"], "session_id": f"{session_id}-other"}
        ids = [s["id"] for s in client.post("/suggestions", json=other).json()["suggestions"]]
        assert suggestion_id in ids

    def test_max_suggestions(self, client, session_id):
        r = client.post("/suggestions", json={
            "utterances": ["J'adore la pizza"], "session_id": session_id, "max_suggestions": 1,
        })
        assert r.json()["count"] == 1

    def test_gaps(self, client, session_id):
        r = client.post("/gaps", json={
            "memory": [{"content": "L'utilisateur a 29 ans", "category": "identité"}],
            "session_id": session_id,
        })
        assert r.status_code == 200
        data = r.json()
        assert "santé" in data["missing_categories"]
        assert "identité" not in data["missing_categories"]


class TestSessions:
    @pytest.fixture
    def registry(self, monkeypatch):
        sessions = OrderedDict()
        monkeypatch.setattr(api, "_sessions", sessions)
        monkeypatch.setattr(api, "MAX_SESSIONS", 2)
        return sessions

    def test_least_recently_used_session_is_evicted(self, client, registry):
        for session in ("a", "b", "a", "c"):
            assert client.post("/gaps", json={"session_id": session}).status_code == 200
        assert list(registry) == ["a", "c"]
        assert client.get("/health").json()["sessions"] == 2

    def test_registry_never_exceeds_limit(self, client, registry):
        for i in range(10):
            client.post("/suggestions", json={"utterances": ["J'adore la pizza"], "session_id": f"s{i}"})
            assert len(registry) <= 2

    def test_evicted_session_starts_fresh(self, client, registry):
        body = {"utterances": ["J'adore la pizza"], "session_id": "a"}
        suggestion_id = client.post("/suggestions", json=body).json()["suggestions"][0]["id"]
        client.post(f"/suggestions/{quote(suggestion_id, safe='')}/used", params={"session_id": "a"})

        client.post("/gaps", json={"session_id": "b"})
        client.post("/gaps", json={"session_id": "c"})
        assert "a" not in registry

        ids = [s["id"] for s in client.post("/suggestions", json=body).json()["suggestions"]]
        assert suggestion_id in ids

    def test_delete_session(self, client, registry):
        client.post("/gaps", json={"session_id": "a"})
        r = client.delete("/sessions/a")
        assert r.status_code == 200
        assert r.json() == {"deleted": "a"}
        assert "a" not in registry

    def test_delete_unknown_session_404(self, client, registry):
        assert client.delete("/sessions/absent").status_code == 404
