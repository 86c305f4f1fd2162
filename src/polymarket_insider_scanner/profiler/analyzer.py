"""Independent suspicion estimates from a language model.

The analyzer gets the trade, its market and the heuristic factors, and
returns a 0-100 score with a short rationale. It is a remote dependency
that may be slow, down or return garbage; ``analyze_with_fallback`` turns
every such failure into a deterministic heuristic-only estimate.
"""

from __future__ import annotations

import json
import math
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from polymarket_insider_scanner.detector.models import SuspicionLevel, level_for_score
from polymarket_insider_scanner.errors import AnalyzerError, MalformedAnalysisError
from polymarket_insider_scanner.ingestor.models import Market, Trade
from polymarket_insider_scanner.metrics import ANALYZER_FALLBACKS
from polymarket_insider_scanner.profiler.models import WalletStats

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_TIMEOUT_SECONDS = 15.0
MAX_ANALYZER_FACTORS = 3

# Heuristic-only fallback
FALLBACK_POINTS_PER_FACTOR = 15
FALLBACK_MAX_SCORE = 50
FALLBACK_REASONING = "Automated heuristic analysis (analyzer offline)"

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "suspicionScore": {"type": "NUMBER"},
        "reasoning": {"type": "STRING"},
        "riskLevel": {"type": "STRING", "enum": [level.value for level in SuspicionLevel]},
        "factors": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
}


@dataclass(frozen=True)
class AnalysisResult:
    """Analyzer verdict for one trade.

    Attributes:
        score: Suspicion estimate in [0, 100].
        reasoning: Short free-text rationale.
        factors: Supplementary factor tags.
        level: Severity derived from ``score``.
    """

    score: float
    reasoning: str
    factors: tuple[str, ...]
    level: SuspicionLevel


class SuspicionAnalyzer(Protocol):
    """Produces an independent suspicion estimate for a trade."""

    async def analyze(
        self,
        trade: Trade,
        market: Market,
        factors: Sequence[str],
        wallet_stats: WalletStats | None,
    ) -> AnalysisResult:
        """Analyze a trade. May raise AnalyzerError."""
        ...

    async def close(self) -> None:
        """Release any held connections."""
        ...


def fallback_analysis(factors: Sequence[str]) -> AnalysisResult:
    """Deterministic estimate used when the analyzer is unavailable.

    Scores 15 points per heuristic factor, capped at 50.
    """
    score = min(FALLBACK_MAX_SCORE, FALLBACK_POINTS_PER_FACTOR * len(factors))
    return AnalysisResult(
        score=float(score),
        reasoning=FALLBACK_REASONING,
        factors=tuple(factors),
        level=level_for_score(score),
    )


async def analyze_with_fallback(
    analyzer: SuspicionAnalyzer | None,
    trade: Trade,
    market: Market,
    factors: Sequence[str],
    wallet_stats: WalletStats | None = None,
) -> tuple[AnalysisResult, bool]:
    """Run the analyzer, degrading to ``fallback_analysis`` on any failure.

    Args:
        analyzer: Analyzer to call, or None when none is configured.
        trade: Trade under evaluation.
        market: Market the trade belongs to.
        factors: Heuristic factor tags.
        wallet_stats: Trader history, if known.

    Returns:
        Tuple of (result, used_fallback).
    """
    if analyzer is None:
        return fallback_analysis(factors), True

    try:
        return await analyzer.analyze(trade, market, factors, wallet_stats), False
    except Exception as e:
        logger.warning("Analyzer failed for trade %s, using fallback: %s", trade.id, e)
        ANALYZER_FALLBACKS.inc()
        return fallback_analysis(factors), True


def clean_json(text: str) -> str:
    """Strip Markdown code fences around a JSON document."""
    if not text:
        return "{}"
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_analysis(data: Any) -> AnalysisResult:
    """Validate a decoded analyzer payload.

    Raises:
        MalformedAnalysisError: If the score is missing or not a finite
            number, or factors are not a list of strings.
    """
    if not isinstance(data, dict):
        raise MalformedAnalysisError(f"Expected an object, got {type(data).__name__}")

    raw_score = data.get("suspicionScore")
    if (
        isinstance(raw_score, bool)
        or not isinstance(raw_score, int | float)
        or not math.isfinite(raw_score)
    ):
        raise MalformedAnalysisError(f"Invalid suspicionScore: {raw_score!r}")
    score = max(0.0, min(100.0, float(raw_score)))

    raw_factors = data.get("factors", [])
    if not isinstance(raw_factors, list):
        raise MalformedAnalysisError(f"Invalid factors: {raw_factors!r}")
    factors = tuple(str(f) for f in raw_factors if isinstance(f, str) and f.strip())

    reasoning = data.get("reasoning", "")
    if not isinstance(reasoning, str):
        reasoning = str(reasoning)

    return AnalysisResult(
        score=score,
        reasoning=reasoning.strip(),
        factors=factors[:MAX_ANALYZER_FACTORS],
        level=level_for_score(score),
    )


def build_prompt(
    trade: Trade,
    market: Market,
    factors: Sequence[str],
    wallet_stats: WalletStats | None,
) -> str:
    """Render the analysis prompt for a trade."""
    wallet_line = f"Wallet: {trade.maker_address}"
    if wallet_stats is not None:
        wallet_line += (
            f" ({wallet_stats.total_trades} trades, "
            f"{wallet_stats.account_age_days:.0f} days old, "
            f"win rate {wallet_stats.win_rate:.0%})"
        )

    return (
        "Analyze this trade for insider trading. Return ONLY valid JSON.\n\n"
        f'Market: "{market.question}" (Vol: ${market.volume:,.0f}, '
        f"Liq: ${market.liquidity:,.0f})\n"
        f'Trade: {trade.side} ${trade.size:,.0f} of "{trade.outcome_label}" '
        f"@ {trade.price * 100:.1f} cents.\n"
        f"{wallet_line}\n"
        f"Flags: {', '.join(factors) or 'none'}\n\n"
        "Assess if this is informed flow.\n"
        "Output JSON structure:\n"
        "{\n"
        '  "suspicionScore": number (0-100),\n'
        '  "reasoning": string (max 20 words),\n'
        '  "riskLevel": "LOW" | "MEDIUM" | "HIGH" | "CRITICAL",\n'
        '  "factors": string[] (max 3 short tags)\n'
        "}"
    )


class GeminiSuspicionAnalyzer:
    """Suspicion analyzer calling the Gemini ``generateContent`` REST API.

    Example:
        ```python
        analyzer = GeminiSuspicionAnalyzer(api_key="...")
        result = await analyzer.analyze(trade, market, factors, None)
        print(result.score, result.reasoning)
        ```
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            api_key: Gemini API key.
            model: Model name.
            base_url: API base URL.
            timeout: HTTP timeout in seconds.
            client: Optional pre-built HTTP client (mainly for tests).
        """
        self._api_key = api_key
        self._model = model
        self._url = f"{base_url.rstrip('/')}/models/{model}:generateContent"
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def model(self) -> str:
        """Configured model name."""
        return self._model

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def analyze(
        self,
        trade: Trade,
        market: Market,
        factors: Sequence[str],
        wallet_stats: WalletStats | None,
    ) -> AnalysisResult:
        """Ask the model for a suspicion estimate.

        Raises:
            AnalyzerError: If the request fails.
            MalformedAnalysisError: If the response cannot be validated.
        """
        prompt = build_prompt(trade, market, factors, wallet_stats)
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }

        try:
            response = await self._client.post(
                self._url,
                json=payload,
                headers={"x-goog-api-key": self._api_key},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise AnalyzerError(f"Gemini request failed: {e}") from e
        except ValueError as e:
            raise MalformedAnalysisError(f"Gemini returned invalid JSON: {e}") from e

        try:
            text = body["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedAnalysisError(f"Unexpected Gemini response shape: {e}") from e

        try:
            data = json.loads(clean_json(text))
        except json.JSONDecodeError as e:
            raise MalformedAnalysisError(f"Analysis is not valid JSON: {e}") from e

        result = parse_analysis(data)
        logger.debug("Gemini scored trade %s at %.0f", trade.id, result.score)
        return result
