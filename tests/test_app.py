import json

import httpx
import pytest

from app import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    app.config["TESTING"] = True
    return app.test_client()


def reply_card():
    return {
        "description": "Track-ready fantasy racer.",
        "specs": {"features": ["Rubber tires"]},
        "primaryImagePrompt": "Render",
        "packagingImagePrompt": "Blister",
    }


def test_index_serves_card_form(client):
    res = client.get("/")
    assert res.status_code == 200
    page = res.get_data(as_text=True)
    assert 'id="carName"' in page
    assert 'name="cardType" value="premium"' in page


def test_card_success(client, fake_gemini, gemini_response):
    state = fake_gemini(gemini_response(json.dumps(reply_card())))
    res = client.post("/api/card", json={"name": " Velocity X ", "category": "premium", "api_key": "page-key"})

    assert res.status_code == 200
    data = res.get_json()
    assert data["card"]["name"] == "Velocity X"
    assert data["card"]["label"] == "Premium"
    assert data["card"]["description"] == "Track-ready fantasy racer."
    assert data["card"]["specs"]["collectorValue"] == "High"
    assert data["images"] == {"primary": None, "packaging": None}
    assert "elapsed" in data
    assert state["keys"] == ["page-key"]


def test_card_uses_server_key(client, fake_gemini, gemini_response, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "server-key")
    state = fake_gemini(gemini_response("sorry, I can't help"))
    res = client.post("/api/card", json={"name": "Bone Shaker"})

    assert res.status_code == 200
    card = res.get_json()["card"]
    assert card["category"] == "standard"
    assert card["specs"]["collectorValue"] == "Standard"
    assert card["description"].startswith("A stunning Bone Shaker")
    assert state["keys"] == ["server-key"]


def test_card_enhances_images_on_request(client, fake_gemini, gemini_response):
    state = fake_gemini(
        gemini_response(json.dumps(reply_card())),
        gemini_response("Enhanced render"),
        gemini_response("Enhanced blister"),
    )
    res = client.post("/api/card", json={"name": "Velocity X", "api_key": "k", "enhance_images": True})

    assert res.status_code == 200
    assert res.get_json()["images"] == {"primary": None, "packaging": None}
    assert len(state["models"].calls) == 3


@pytest.mark.parametrize(
    "body, message",
    [
        ({"name": "   ", "api_key": "k"}, "Please enter a car name"),
        ({"name": "Velocity X", "category": "gold", "api_key": "k"}, "Unknown category: gold"),
        ({"name": "Velocity X", "model": "gpt-4o", "api_key": "k"}, "Unknown model: gpt-4o"),
        ({"name": "Velocity X"}, "API key is required to generate cards"),
    ],
)
def test_card_bad_input(client, body, message):
    res = client.post("/api/card", json=body)
    assert res.status_code == 400
    assert res.get_json() == {"error": message}


def test_card_upstream_failure(client, fake_gemini):
    fake_gemini(httpx.ConnectError("connection refused"))
    res = client.post("/api/card", json={"name": "Velocity X", "category": "premium", "api_key": "k"})

    assert res.status_code == 502
    data = res.get_json()
    assert data == {"error": "Failed to generate card. Please check your API key and try again."}
    assert "card" not in data


def test_image_prompt(client, fake_gemini, gemini_response):
    fake_gemini(gemini_response("A glossy red toy car"))
    res = client.post("/api/image-prompt", json={"prompt": "red toy car", "api_key": "k"})
    assert res.status_code == 200
    assert res.get_json()["text"] == "A glossy red toy car"


def test_image_prompt_failure_is_null(client, fake_gemini):
    fake_gemini(httpx.ReadTimeout("timed out"))
    res = client.post("/api/image-prompt", json={"prompt": "red toy car", "api_key": "k"})
    assert res.status_code == 200
    assert res.get_json()["text"] is None


def test_image_prompt_requires_prompt(client):
    res = client.post("/api/image-prompt", json={"prompt": " ", "api_key": "k"})
    assert res.status_code == 400


@pytest.mark.parametrize("route", ["/api/card", "/api/image-prompt"])
@pytest.mark.parametrize("body", [json.dumps(["Velocity X"]), json.dumps("Velocity X"), "not json"])
def test_non_object_body_rejected(client, route, body):
    res = client.post(route, data=body, content_type="application/json")
    assert res.status_code == 400
    assert res.get_json() == {"error": "Request body must be a JSON object"}


def test_card_null_category_is_standard(client, fake_gemini, gemini_response):
    fake_gemini(gemini_response("sorry, I can't help"))
    res = client.post("/api/card", json={"name": "Bone Shaker", "category": None, "api_key": "k"})
    assert res.status_code == 200
    assert res.get_json()["card"]["category"] == "standard"
