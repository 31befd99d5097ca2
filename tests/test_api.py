# tests/test_api.py
import pytest
from fastapi.testclient import TestClient

from bookgen.api import create_app
from bookgen.errors import AuthError

from conftest import LIGHTHOUSE


@pytest.fixture
def client(settings, pipeline):
    return TestClient(create_app(settings, pipeline))


def _generate(client, user=None, **body):
    headers = {"X-User-Id": user} if user else {}
    return client.post("/api/generate-book", json={"description": LIGHTHOUSE, "size": "small", **body},
                       headers=headers)


def test_generate_book(client):
    r = _generate(client, genre="fantasy")
    assert r.status_code == 200
    body = r.json()
    assert len(body["chapters"]) == 4
    assert body["metadata"]["bookInfo"]["genre"] == "fantasy"
    assert body["metadata"]["technical"]["probed"] is False
    assert "bookId" not in body


def test_generate_rejects_short_premise(client, llm):
    r = _generate(client, description="a bb cc dd")
    assert r.status_code == 400
    assert r.json()["issues"]
    assert llm.calls == []


def test_generate_rejects_non_object_body(client):
    r = client.post("/api/generate-book", json=["nope"])
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid request"


def test_auth_failure_is_401(client, llm):
    llm.fail = lambda model, prompt: AuthError()
    r = _generate(client)
    assert r.status_code == 401
    assert r.json()["solution"]


def test_saved_book_lifecycle(client):
    book_id = _generate(client, user="alice").json()["bookId"]

    listed = client.get("/api/books", headers={"X-User-Id": "alice"}).json()
    assert [b["id"] for b in listed] == [book_id]
    assert listed[0]["chapters"] == 4

    r = client.get(f"/api/books/{book_id}", headers={"X-User-Id": "alice"})
    assert r.json()["ownerId"] == "alice"

    assert client.get(f"/api/books/{book_id}", headers={"X-User-Id": "bob"}).status_code == 403

    r = client.get(f"/api/books/{book_id}/export/txt", headers={"X-User-Id": "alice"})
    assert r.status_code == 200
    assert "CHAPTER 4:" in r.text
    assert client.get(f"/api/books/{book_id}/export/epub", headers={"X-User-Id": "alice"}).status_code == 400
    assert client.get(f"/api/books/{book_id}/export/txt", headers={"X-User-Id": "bob"}).status_code == 403

    assert client.delete(f"/api/books/{book_id}", headers={"X-User-Id": "bob"}).status_code == 403
    assert client.delete(f"/api/books/{book_id}", headers={"X-User-Id": "alice"}).status_code == 204
    assert client.get(f"/api/books/{book_id}", headers={"X-User-Id": "alice"}).status_code == 404


def test_books_need_a_user(client):
    assert client.get("/api/books").status_code == 400


def test_sizes_and_templates(client):
    sizes = client.get("/api/sizes").json()
    assert [s["key"] for s in sizes] == ["small", "medium", "large", "epic"]
    assert sizes[0]["tokenBudget"] == 4000
    assert sizes[0]["estimatedTokens"] == 5200

    templates = client.get("/api/templates").json()
    assert len(templates) == 10
    assert templates[0]["recommendedSize"] == "large"
