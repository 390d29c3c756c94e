from __future__ import annotations

import http.client
import json
import logging
from typing import Any, Iterable, Optional, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from aggregates import LedgerEntry, category_breakdown, total_income
from config import get_settings
from errors import InsufficientDataError, UpstreamError

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
FALLBACK_INSIGHT = "No insight generated. Try again later."


def _format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return f"{int(amount)}"
    return f"{amount:.2f}"


def build_prompt(income: float, breakdown: dict[str, float], currency_symbol: str) -> str:
    if breakdown:
        expenses = ", ".join(
            f"{name}: {currency_symbol}{_format_amount(value)}"
            for name, value in breakdown.items()
        )
    else:
        expenses = "none recorded"
    return (
        "You are a personal finance advisor for an Indian user.\n"
        f"This month's total income: {currency_symbol}{_format_amount(income)}.\n"
        f"Expenses by category: {expenses}.\n"
        "Give a short summary (2-4 sentences) and 3 actionable saving tips "
        "in plain English."
    )


class InsightProvider(Protocol):
    def generate(self, prompt: str) -> Optional[str]: ...


def _first_candidate_text(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        raise UpstreamError("Unexpected insight provider response", details=payload)
    candidates = payload.get("candidates")
    if not candidates:
        return None
    try:
        parts = candidates[0].get("content", {}).get("parts") or []
        text = parts[0].get("text") if parts else None
    except (AttributeError, IndexError, KeyError, TypeError) as exc:
        raise UpstreamError(
            "Unexpected insight provider response", details=payload
        ) from exc
    if text is not None and not isinstance(text, str):
        raise UpstreamError("Unexpected insight provider response", details=payload)
    return text


def _error_details(exc: HTTPError) -> Any:
    try:
        body = exc.read().decode("utf-8")
    except Exception:
        return exc.reason
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return body or exc.reason


class GeminiProvider:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        timeout: float = 20.0,
        retries: int = 0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.retries = max(0, retries)

    @classmethod
    def from_settings(cls) -> "GeminiProvider":
        settings = get_settings()
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.insight_model,
            timeout=settings.insight_timeout_secs,
            retries=settings.insight_retries,
        )

    def _request(self, prompt: str) -> Request:
        body = json.dumps({"contents": [{"parts": [{"text": prompt}]}]}).encode("utf-8")
        return Request(
            GEMINI_ENDPOINT.format(model=self.model),
            data=body,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "x-goog-api-key": self.api_key or "",
            },
        )

    def generate(self, prompt: str) -> Optional[str]:
        if not self.api_key:
            raise UpstreamError("GEMINI_API_KEY is not configured")

        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                with urlopen(self._request(prompt), timeout=self.timeout) as resp:
                    body = resp.read()
                break
            except HTTPError as exc:
                details = _error_details(exc)
                logger.error(f"insight_http_error: status={exc.code} details={details}")
                raise UpstreamError(
                    f"Insight provider returned HTTP {exc.code}", details=details
                ) from exc
            except (URLError, TimeoutError, OSError, http.client.HTTPException) as exc:
                reason = getattr(exc, "reason", exc)
                logger.warning(
                    f"insight_network_error: attempt={attempt}/{attempts} reason={reason}"
                )
                if attempt == attempts:
                    raise UpstreamError(
                        "Failed to reach insight provider", details=str(reason)
                    ) from exc

        try:
            raw = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise UpstreamError(
                "Insight provider returned invalid JSON", details=repr(body[:200])
            ) from exc
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise UpstreamError(
                "Insight provider returned invalid JSON", details=raw[:500]
            ) from exc
        return _first_candidate_text(payload)


class InsightService:
    def __init__(
        self, provider: InsightProvider, currency_symbol: Optional[str] = None
    ) -> None:
        self.provider = provider
        self.currency_symbol = (
            currency_symbol
            if currency_symbol is not None
            else get_settings().currency_symbol
        )

    def generate(self, records: Iterable[LedgerEntry]) -> str:
        records = list(records)
        if not records:
            raise InsufficientDataError(
                "No transactions found for this month to analyze."
            )
        prompt = build_prompt(
            total_income(records), category_breakdown(records), self.currency_symbol
        )
        logger.info(f"insight_requested: transactions={len(records)}")
        text = self.provider.generate(prompt)
        if not text or not text.strip():
            return FALLBACK_INSIGHT
        return text.strip()
