"""LM Studio (OpenAI compatible) chat-completions client used as the remote risk scorer"""

import asyncio
import json
import logging
import re
from typing import Any, Dict

import httpx

from payment_proxy.config import settings
from payment_proxy.domain.exceptions import MalformedResponseError, RemoteCallError
from payment_proxy.domain.models import RiskAssessment, RiskFactor, RiskLevel, Transaction
from payment_proxy.infrastructure.observability.metrics import llm_failure_counter, llm_latency_histogram

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a financial risk assessment expert. Analyze the transaction and "
    "provide a detailed risk assessment in JSON format."
)

_CODE_FENCE_START = re.compile(r"^```(?:json)?", re.IGNORECASE)
_CODE_FENCE_END = re.compile(r"```$")


def normalize_base_url(base_url: str) -> str:
    """Strip trailing slash and /v1 suffix; prefer 127.0.0.1 over localhost to avoid ::1"""
    url = base_url.strip()
    if url.startswith("http://localhost"):
        url = url.replace("http://localhost", "http://127.0.0.1", 1)
    url = url.rstrip("/")
    url = re.sub(r"/v1$", "", url, flags=re.IGNORECASE)
    return url


def build_risk_prompt(transaction: Transaction) -> str:
    return f"""
Analyze this payment transaction for fraud risk:

Transaction Details:
- Amount: {transaction.amount} {transaction.currency}
- Payment Source: {transaction.source}
- Customer Email: {transaction.email}
- Transaction Time: {transaction.created_at.isoformat()}

Please provide a risk assessment with:
1. Risk score (0.0 to 1.0)
2. Risk level (LOW, MEDIUM, HIGH, CRITICAL)
3. Explanation of the assessment
4. Key risk factors identified
5. Recommendations for handling this transaction

Consider factors like:
- Transaction amount relative to normal patterns
- Email domain legitimacy
- Payment source token patterns
- Time-based patterns

Respond only with valid JSON in this format:
{{
  "riskScore": 0.15,
  "riskLevel": "LOW",
  "explanation": "Low risk transaction based on normal amount and legitimate email domain",
  "factors": [
    {{"factor": "amount_normal", "weight": 0.1, "description": "Transaction amount within normal range"}}
  ],
  "recommendations": ["Process normally"]
}}
"""


def parse_assessment(content: str, transaction_id: str) -> RiskAssessment:
    """
    Parse model output into a RiskAssessment.

    Raises:
        MalformedResponseError: Not JSON, or riskScore/riskLevel missing or invalid
    """
    cleaned = _CODE_FENCE_END.sub("", _CODE_FENCE_START.sub("", content.strip())).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Risk model returned non-JSON content: {e}", content) from e

    if not isinstance(parsed, dict):
        raise MalformedResponseError("Risk model returned JSON that is not an object", content)

    score = parsed.get("riskScore")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0.0 <= score <= 1.0:
        raise MalformedResponseError(f"Invalid riskScore: {score!r}", content)

    try:
        level = RiskLevel(str(parsed.get("riskLevel", "")).upper())
        factors = [
            RiskFactor(
                factor=str(f["factor"]),
                weight=float(f.get("weight", 0.0)),
                description=str(f.get("description", "")),
            )
            for f in parsed.get("factors") or []
        ]
    except (KeyError, ValueError, TypeError, AttributeError) as e:
        raise MalformedResponseError(f"Invalid risk assessment fields: {e}", content) from e

    return RiskAssessment(
        transaction_id=transaction_id,
        risk_score=float(score),
        risk_level=level,
        explanation=str(parsed.get("explanation", "")),
        factors=factors,
        recommendations=[str(r) for r in parsed.get("recommendations") or []],
    )


class LLMClient:
    """Client for the LM Studio chat-completions endpoint"""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = normalize_base_url(base_url or settings.llm_base_url)
        self.model = model or settings.llm_model
        self.timeout = timeout or settings.llm_timeout_seconds
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/v1",
            timeout=self.timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        logger.info(f"LLMClient using LM Studio endpoint at {self.base_url}")

    async def score(self, transaction: Transaction) -> RiskAssessment:
        """
        Ask the model for a risk assessment of one transaction.

        Raises:
            RemoteCallError: On timeout, connection failure or non-2xx status
            MalformedResponseError: When the reply cannot be parsed into an assessment
        """
        try:
            with llm_latency_histogram.time():
                data = await asyncio.wait_for(self._complete(transaction), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            llm_failure_counter.labels(reason="remote").inc()
            raise RemoteCallError(f"Risk model timeout after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            llm_failure_counter.labels(reason="remote").inc()
            logger.error(
                "LM Studio API error",
                extra={"status_code": e.response.status_code, "transaction_id": transaction.id},
            )
            raise RemoteCallError(f"Risk model error: {e.response.status_code}") from e
        except httpx.ConnectError as e:
            llm_failure_counter.labels(reason="remote").inc()
            logger.error(
                f"Cannot connect to LM Studio at {self.base_url}; ensure it is running with a model loaded",
                extra={"transaction_id": transaction.id},
            )
            raise RemoteCallError("LM Studio server is not running") from e
        except httpx.HTTPError as e:
            llm_failure_counter.labels(reason="remote").inc()
            raise RemoteCallError(f"Risk model request failed: {e}") from e
        except ValueError as e:
            llm_failure_counter.labels(reason="malformed").inc()
            raise MalformedResponseError(f"Risk model response body is not JSON: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
            if not isinstance(content, str):
                raise TypeError(f"content is {type(content).__name__}, expected str")
        except (KeyError, IndexError, TypeError) as e:
            llm_failure_counter.labels(reason="malformed").inc()
            raise MalformedResponseError(f"Unexpected completion payload: {e}", json.dumps(data)) from e

        try:
            return parse_assessment(content, transaction.id)
        except MalformedResponseError as e:
            llm_failure_counter.labels(reason="malformed").inc()
            logger.error(
                "Failed to parse LM Studio response",
                extra={"transaction_id": transaction.id, "content": e.content, "error": str(e)},
            )
            raise

    async def _complete(self, transaction: Transaction) -> Dict[str, Any]:
        response = await self._client.post(
            "/chat/completions",
            json={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_risk_prompt(transaction)},
                ],
                "max_tokens": self.max_tokens,
                "temperature": self.temperature,
                "stream": False,
            },
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        await self._client.aclose()
