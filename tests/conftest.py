import json
from datetime import datetime

import pytest

from intune_clone_tool.graph_client import GraphAuth, GraphClient
from intune_clone_tool.picker import Prompter

ROOT = "https://graph.microsoft.com/beta"

SCOPE_TAGS = [
    {"id": "0", "displayName": "Default"},
    {"id": "5", "displayName": "Production"},
    {"id": "6", "displayName": "Sales"},
    {"id": "10", "displayName": "Development"},
    {"id": "11", "displayName": "Test"},
]

FIXED_NOW = datetime(2024, 3, 15, 9, 30, 5)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else (json.dumps(payload) if payload is not None else "")
        self.headers = {}

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeGraph:
    """Stand-in for requests.request routing (method, path) to canned payloads."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, path, payload=None, status=200):
        # payload may be a callable taking the request body
        self.routes[(method, path)] = (status, payload)

    def __call__(self, method, url, json=None, headers=None, timeout=None):
        path = url[len(ROOT):] if url.startswith(ROOT) else url
        self.calls.append((method, path, json))
        route = self.routes.get((method, path)) or self.routes.get((method, path.split("?")[0]))
        if route is None:
            return FakeResponse(404, {"error": {"message": f"no route for {method} {path}"}})
        status, payload = route
        if callable(payload):
            payload = payload(json)
        return FakeResponse(status, payload)

    def calls_for(self, method, path_prefix=""):
        return [c for c in self.calls if c[0] == method and c[1].startswith(path_prefix)]

    @property
    def mutating_calls(self):
        return [c for c in self.calls if c[0] in ("POST", "PATCH", "PUT", "DELETE")]


class ScriptedPrompter(Prompter):
    """Answers prompts from a list; an exhausted list answers with blank input."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.output = []
        super().__init__(ask=self._ask, echo=self.output.append)

    def _ask(self, label, default):
        self.output.append(label)
        answer = self.answers.pop(0) if self.answers else ""
        return answer if answer != "" else default


@pytest.fixture
def fake_graph(monkeypatch):
    graph = FakeGraph()
    graph.add("GET", "/deviceManagement/roleScopeTags", {"value": SCOPE_TAGS})
    monkeypatch.setattr("requests.request", graph)
    return graph


@pytest.fixture
def client(fake_graph):
    return GraphClient(auth=GraphAuth(bearer_token="test-token"))


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
