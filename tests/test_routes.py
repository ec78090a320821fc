import pytest, sys, os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from fastapi.testclient import TestClient

import config
import main
from errors import GenerationFailed


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(config, "FORMULA_PROVIDER", "gemini")
    monkeypatch.setattr(config, "GEMINI_API_KEY", "")
    monkeypatch.setattr(config, "DEMO_DELAY_SECONDS", 0.0)
    main._HANDOFF_STORE.clear()
    return TestClient(main.app)


def _submit(client, **fields):
    data = {"productDescription": "A lightweight vitamin C serum for sensitive skin"}
    data.update(fields)
    return client.post("/form", data=data, follow_redirects=False)


def test_landing_and_form_pages(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "Generate a Formula" in r.text
    r = client.get("/form")
    assert r.status_code == 200
    assert "Need Inspiration?" in r.text
    assert "sunscreen lotion SPF 30+" in r.text
    assert 'maxlength="2000"' in r.text


def test_no_cache_headers(client):
    r = client.get("/form")
    assert "no-store" in r.headers["cache-control"]
    assert r.headers["pragma"] == "no-cache"


def test_empty_description_rejected(client):
    r = _submit(client, productDescription="   ")
    assert r.status_code == 400
    assert "Description Required" in r.text
    assert main._HANDOFF_STORE == {}


def test_overlong_description_rejected(client):
    r = _submit(client, productDescription="x" * (config.MAX_DESCRIPTION_CHARS + 1))
    assert r.status_code == 400
    assert "too long" in r.text
    assert main._HANDOFF_STORE == {}


def test_submit_then_results_demo(client):
    r = _submit(client, productType="Serum")
    assert r.status_code == 303
    location = r.headers["location"]
    assert location.startswith("/results?rid=")

    page = client.get(location)
    assert page.status_code == 200
    assert "Serum Formula" in page.text
    assert "Glycerin" in page.text
    assert "100.00%" in page.text
    assert "Processing Instructions" in page.text
    assert "Demo formula" in page.text


def test_handoff_is_read_once(client):
    location = _submit(client).headers["location"]
    assert "Custom Formula" in client.get(location).text
    again = client.get(location)
    assert "No product description found" in again.text
    assert 'href="/form"' in again.text


def test_results_without_rid(client):
    r = client.get("/results")
    assert r.status_code == 200
    assert "No product description found" in r.text


def test_expired_handoff(client, monkeypatch):
    location = _submit(client).headers["location"]
    monkeypatch.setattr(config, "HANDOFF_TTL_SECONDS", -1)
    assert "No product description found" in client.get(location).text


def test_generation_failure_page(client, monkeypatch):
    async def boom(req, transport=None):
        raise GenerationFailed("Gemini API error: 503 - overloaded", status_code=503)

    monkeypatch.setattr(main, "generate_formula", boom)
    location = _submit(client).headers["location"]
    r = client.get(location)
    assert r.status_code == 200
    assert "Generation Failed" in r.text
    assert "Gemini API error: 503" in r.text
    assert "Try Again" in r.text


def test_formula_api_demo(client):
    r = client.post("/api/formula", json={"productDescription": "rich cream", "productType": "Cream"})
    assert r.status_code == 200
    body = r.json()
    assert body["source"] == "demo"
    assert body["formula"]["name"] == "Cream Formula"
    assert len(body["formula"]["ingredients"]) == 7


def test_formula_api_accepts_legacy_description_key(client):
    r = client.post("/api/formula", json={"description": "gentle cleansing foam"})
    assert r.status_code == 200
    assert "gentle cleansing foam" in r.json()["formula"]["description"]


def test_formula_api_validation(client):
    assert client.post("/api/formula", json={"productDescription": "  "}).status_code == 422
    assert client.post("/api/formula", json={"productType": "Serum"}).status_code == 422


def test_formula_api_upstream_failure(client, monkeypatch):
    async def boom(req, transport=None):
        raise GenerationFailed("Gemini request failed: timeout")

    monkeypatch.setattr(main, "generate_formula", boom)
    r = client.post("/api/formula", json={"productDescription": "serum"})
    assert r.status_code == 502
    assert "timeout" in r.json()["detail"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "provider": "gemini", "has_key": False}
