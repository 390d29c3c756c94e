import io
import json
from dataclasses import dataclass
from http.client import IncompleteRead
from urllib.error import HTTPError, URLError

import pytest

import insights
from errors import InsufficientDataError, UpstreamError
from insights import FALLBACK_INSIGHT, GeminiProvider, InsightService, build_prompt
from models import TransactionType


@dataclass
class Entry:
    kind: TransactionType
    category: str
    amount: float


class FakeProvider:
    def __init__(self, reply):
        self.reply = reply
        self.prompts: list[str] = []

    def generate(self, prompt: str):
        self.prompts.append(prompt)
        return self.reply


class FakeResponse:
    def __init__(self, payload):
        self.body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()

    def read(self) -> bytes:
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


RECORDS = [
    Entry(TransactionType.income, "Monthly Income", 55000),
    Entry(TransactionType.expense, "Food", 2000),
    Entry(TransactionType.expense, "Rent", 15000),
]


def test_prompt_embeds_income_and_category_listing() -> None:
    prompt = build_prompt(55000, {"Food": 2000, "Rent": 15000.5}, "₹")

    assert "total income: ₹55000." in prompt
    assert "Food: ₹2000, Rent: ₹15000.50" in prompt
    assert "3 actionable saving tips" in prompt


def test_prompt_without_expenses() -> None:
    assert "Expenses by category: none recorded." in build_prompt(100, {}, "$")


def test_generate_requires_transactions() -> None:
    provider = FakeProvider("unused")
    with pytest.raises(InsufficientDataError):
        InsightService(provider, currency_symbol="₹").generate([])
    assert provider.prompts == []


def test_generate_returns_provider_text() -> None:
    provider = FakeProvider("  Spend less on rent.  ")
    text = InsightService(provider, currency_symbol="₹").generate(RECORDS)

    assert text == "Spend less on rent."
    assert len(provider.prompts) == 1
    assert "₹55000" in provider.prompts[0]
    assert "Food: ₹2000" in provider.prompts[0]


@pytest.mark.parametrize("reply", [None, "", "   "])
def test_generate_falls_back_when_no_text(reply) -> None:
    service = InsightService(FakeProvider(reply), currency_symbol="₹")
    assert service.generate(RECORDS) == FALLBACK_INSIGHT


def test_generate_is_not_cached() -> None:
    provider = FakeProvider("tip")
    service = InsightService(provider, currency_symbol="₹")
    service.generate(RECORDS)
    service.generate(RECORDS)
    assert len(provider.prompts) == 2


def test_gemini_provider_posts_prompt_and_extracts_first_candidate(monkeypatch) -> None:
    seen = {}

    def fake_urlopen(request, timeout):
        seen["url"] = request.full_url
        seen["headers"] = dict(request.header_items())
        seen["body"] = json.loads(request.data)
        seen["timeout"] = timeout
        return FakeResponse(
            {"candidates": [{"content": {"parts": [{"text": "Save more."}]}}]}
        )

    monkeypatch.setattr(insights, "urlopen", fake_urlopen)
    provider = GeminiProvider(api_key="secret", model="gemini-test", timeout=3)

    assert provider.generate("hello") == "Save more."
    assert seen["url"].endswith("/models/gemini-test:generateContent")
    assert seen["headers"]["X-goog-api-key"] == "secret"
    assert seen["body"] == {"contents": [{"parts": [{"text": "hello"}]}]}
    assert seen["timeout"] == 3


@pytest.mark.parametrize(
    "payload",
    [{}, {"candidates": []}, {"candidates": [{"content": {"parts": []}}]}],
)
def test_gemini_provider_returns_none_without_candidates(monkeypatch, payload) -> None:
    monkeypatch.setattr(insights, "urlopen", lambda request, timeout: FakeResponse(payload))
    assert GeminiProvider(api_key="k").generate("p") is None


@pytest.mark.parametrize(
    "payload",
    [b"not json", b"\xff\xfe{", [1, 2], {"candidates": ["oops"]}, {"candidates": [{"content": {"parts": [{"text": 5}]}}]}],
)
def test_gemini_provider_rejects_malformed_responses(monkeypatch, payload) -> None:
    monkeypatch.setattr(insights, "urlopen", lambda request, timeout: FakeResponse(payload))
    with pytest.raises(UpstreamError):
        GeminiProvider(api_key="k").generate("p")


def test_gemini_provider_forwards_error_details(monkeypatch) -> None:
    calls = []

    def fake_urlopen(request, timeout):
        calls.append(request)
        raise HTTPError(
            request.full_url,
            429,
            "Too Many Requests",
            hdrs=None,
            fp=io.BytesIO(b'{"error": {"message": "quota exceeded"}}'),
        )

    monkeypatch.setattr(insights, "urlopen", fake_urlopen)

    with pytest.raises(UpstreamError) as excinfo:
        GeminiProvider(api_key="k", retries=2).generate("p")

    assert excinfo.value.details == {"error": {"message": "quota exceeded"}}
    # HTTP error responses are never retried.
    assert len(calls) == 1


def test_gemini_provider_retries_network_failures_then_fails(monkeypatch) -> None:
    calls = []

    def fake_urlopen(request, timeout):
        calls.append(timeout)
        raise URLError("connection refused")

    monkeypatch.setattr(insights, "urlopen", fake_urlopen)

    with pytest.raises(UpstreamError) as excinfo:
        GeminiProvider(api_key="k", timeout=1.5, retries=1).generate("p")

    assert calls == [1.5, 1.5]
    assert "connection refused" in excinfo.value.details


def test_gemini_provider_recovers_on_retry(monkeypatch) -> None:
    replies = [
        TimeoutError("timed out"),
        FakeResponse({"candidates": [{"content": {"parts": [{"text": "ok"}]}}]}),
    ]

    def fake_urlopen(request, timeout):
        reply = replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(insights, "urlopen", fake_urlopen)
    assert GeminiProvider(api_key="k", retries=1).generate("p") == "ok"


class TruncatedResponse(FakeResponse):
    def __init__(self) -> None:
        super().__init__(b"")

    def read(self) -> bytes:
        raise IncompleteRead(b'{"cand')


def test_gemini_provider_treats_truncated_body_as_transport_failure(monkeypatch) -> None:
    calls = []

    def fake_urlopen(request, timeout):
        calls.append(request)
        return TruncatedResponse()

    monkeypatch.setattr(insights, "urlopen", fake_urlopen)

    with pytest.raises(UpstreamError) as excinfo:
        GeminiProvider(api_key="k", retries=1).generate("p")

    assert len(calls) == 2
    assert excinfo.value.details


def test_gemini_provider_requires_api_key(monkeypatch) -> None:
    def fail(*args, **kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr(insights, "urlopen", fail)
    with pytest.raises(UpstreamError):
        GeminiProvider(api_key=None).generate("p")
