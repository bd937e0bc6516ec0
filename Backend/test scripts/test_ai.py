import json

import pytest
import requests

from conftest import FakeResponse
from services.learning_service import feedback as fb
from services.learning_service.ai_gateway import AIGateway
from services.learning_service.errors import GenerationError
from services.learning_service.question_generator import TOOL_NAME, generate_questions

QUESTIONS = [
    {"question": "Which bin takes glass?", "options": ["Green", "Blue", "Black", "Brown"],
     "correctAnswer": 0, "context_for_ai": "recycling"},
]


def _gateway(api_key="test-key"):
    return AIGateway(url="https://gateway.test/v1/chat/completions", api_key=api_key,
                     model="test-model", timeout=5)


def _reply(content):
    return FakeResponse(200, {"choices": [{"message": {"content": content}}]})


def _tool_reply(arguments, name=TOOL_NAME):
    return FakeResponse(200, {"choices": [{"message": {"tool_calls": [
        {"function": {"name": name, "arguments": arguments}}
    ]}}]})


@pytest.fixture
def post(monkeypatch):
    """Replace requests.post; set .response or .error before calling."""
    class _Post:
        response = None
        error = None
        calls = []

        def __call__(self, url, headers=None, json=None, timeout=None):
            self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
            if self.error is not None:
                raise self.error
            return self.response

    fake = _Post()
    fake.calls = []
    monkeypatch.setattr(requests, "post", fake)
    return fake

# -------------------- Feedback --------------------

def test_feedback_text(post):
    post.response = _reply("  Correct! Try composting food scraps.  ")
    text = fb.get_feedback(_gateway(), "Q?", "A", True, "ctx")
    assert text == "Correct! Try composting food scraps."
    sent = post.calls[0]
    assert sent["headers"]["Authorization"] == "Bearer test-key"
    assert sent["json"]["model"] == "test-model"
    assert "Status: Correct" in sent["json"]["messages"][1]["content"]


def test_feedback_rate_limited_depends_on_correctness(post):
    post.response = FakeResponse(429, text="slow down")
    assert fb.get_feedback(_gateway(), "Q?", "A", True) == fb.RATE_LIMITED_CORRECT
    assert fb.get_feedback(_gateway(), "Q?", "A", False) == fb.RATE_LIMITED_INCORRECT


@pytest.mark.parametrize("response", [
    FakeResponse(500, text="boom"),
    FakeResponse(200, {"unexpected": True}),
    FakeResponse(200, None),
])
def test_feedback_falls_back(post, response):
    post.response = response
    assert fb.get_feedback(_gateway(), "Q?", "A", False) == fb.FALLBACK_FEEDBACK


def test_feedback_timeout_falls_back(post):
    post.error = requests.Timeout("read timed out")
    assert fb.get_feedback(_gateway(), "Q?", "A", True) == fb.FALLBACK_FEEDBACK


def test_feedback_without_key(post):
    assert fb.get_feedback(_gateway(api_key=None), "Q?", "A", True) == fb.FALLBACK_FEEDBACK
    assert post.calls == []


def test_blank_feedback_falls_back(post):
    post.response = _reply("   ")
    assert fb.get_feedback(_gateway(), "Q?", "A", True) == fb.FALLBACK_FEEDBACK

# -------------------- Question generation --------------------

def test_generate_questions(post):
    post.response = _tool_reply(json.dumps({"questions": QUESTIONS}))
    questions = generate_questions(_gateway(), "Recycling", "Sorting household waste", number_of_questions=1)
    assert questions == QUESTIONS

    body = post.calls[0]["json"]
    assert body["tool_choice"]["function"]["name"] == TOOL_NAME
    assert "Create 1 quiz questions" in body["messages"][1]["content"]


def test_edit_mode_sends_existing_questions(post):
    post.response = _tool_reply(json.dumps({"questions": QUESTIONS}))
    generate_questions(_gateway(), "Recycling", "Sorting household waste", mode="edit",
                       existing_questions=QUESTIONS)
    prompt = post.calls[0]["json"]["messages"][1]["content"]
    assert "Which bin takes glass?" in prompt


@pytest.mark.parametrize("title,description,mode", [
    ("", "Sorting household waste", "add"),
    ("Recycling", "", "add"),
    ("Recycling", "Sorting household waste", "rewrite"),
])
def test_generate_rejects_bad_input(post, title, description, mode):
    with pytest.raises(GenerationError) as exc:
        generate_questions(_gateway(), title, description, mode=mode)
    assert exc.value.status_code == 400
    assert post.calls == []


def test_generate_without_key(post):
    with pytest.raises(GenerationError) as exc:
        generate_questions(_gateway(api_key=None), "Recycling", "Sorting household waste")
    assert exc.value.status_code == 500
    assert exc.value.message == "AI service not configured"


@pytest.mark.parametrize("status,expected", [
    (429, "Rate limit exceeded. Please try again in a moment."),
    (402, "AI credits exhausted. Please add credits to your workspace."),
    (503, "Failed to generate questions with AI"),
])
def test_generate_upstream_errors(post, status, expected):
    post.response = FakeResponse(status, text="upstream")
    with pytest.raises(GenerationError) as exc:
        generate_questions(_gateway(), "Recycling", "Sorting household waste")
    assert exc.value.status_code == (status if status in (429, 402) else 500)
    assert exc.value.message == expected


@pytest.mark.parametrize("response", [
    _reply("plain text instead of a tool call"),
    _tool_reply("{not json"),
    _tool_reply(json.dumps({"questions": QUESTIONS}), name="other_tool"),
    _tool_reply(json.dumps({"items": []})),
])
def test_generate_unexpected_format(post, response):
    post.response = response
    with pytest.raises(GenerationError) as exc:
        generate_questions(_gateway(), "Recycling", "Sorting household waste")
    assert exc.value.status_code == 500
    assert exc.value.message == "Unexpected AI response format"
