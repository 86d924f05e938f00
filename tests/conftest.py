import pytest
from google.genai import types

import card_service


def _gemini_response(text):
    return types.GenerateContentResponse(
        candidates=[
            types.Candidate(content=types.Content(role="model", parts=[types.Part(text=text)]))
        ]
    )


class FakeModels:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeClient:
    def __init__(self, models):
        self.models = models
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True


@pytest.fixture
def gemini_response():
    return _gemini_response


@pytest.fixture
def fake_gemini(monkeypatch):
    """Replace the Gemini client; returns a function taking the queued outcomes."""
    state = {}

    def install(*outcomes):
        models = FakeModels(outcomes)
        state["models"] = models
        state["keys"] = []
        state["clients"] = []

        def make_client(api_key):
            state["keys"].append(api_key)
            client = FakeClient(models)
            state["clients"].append(client)
            return client

        monkeypatch.setattr(card_service, "make_client", make_client)
        return state

    return install
