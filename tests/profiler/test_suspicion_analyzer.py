"""Tests for the suspicion analyzer."""

import json
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from polymarket_insider_scanner.detector.models import SuspicionLevel
from polymarket_insider_scanner.errors import AnalyzerError, MalformedAnalysisError
from polymarket_insider_scanner.ingestor.models import Market, Trade
from polymarket_insider_scanner.profiler.analyzer import (
    FALLBACK_REASONING,
    GeminiSuspicionAnalyzer,
    analyze_with_fallback,
    build_prompt,
    clean_json,
    fallback_analysis,
    parse_analysis,
)
from polymarket_insider_scanner.profiler.models import WalletStats

MARKET = Market(id="c1", question="Will X win?", volume=2_000_000, liquidity=300_000)
TRADE = Trade(
    id="t1",
    market_id="c1",
    outcome_index=0,
    outcome_label="X",
    side="BUY",
    price=0.12,
    size=35_000.0,
    timestamp=1_700_000_000_000,
    maker_address="0xabc",
    transaction_hash="0xtx",
)
FACTORS = ("Known insider wallet", "Longshot bet (12%)")


def gemini_response(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def make_analyzer(handler: Any) -> GeminiSuspicionAnalyzer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiSuspicionAnalyzer(
        "key-123", model="gemini-test", base_url="https://ai.test", client=client
    )


class TestFallback:
    """Tests for the heuristic-only fallback."""

    def test_points_per_factor(self) -> None:
        result = fallback_analysis(["a", "b", "c"])

        assert result.score == 45.0
        assert result.level == SuspicionLevel.MEDIUM
        assert result.reasoning == FALLBACK_REASONING
        assert result.factors == ("a", "b", "c")

    def test_capped(self) -> None:
        assert fallback_analysis(["a"] * 6).score == 50.0

    def test_no_factors(self) -> None:
        result = fallback_analysis([])

        assert result.score == 0.0
        assert result.level == SuspicionLevel.LOW

    @pytest.mark.asyncio
    async def test_no_analyzer_uses_fallback(self) -> None:
        result, used_fallback = await analyze_with_fallback(None, TRADE, MARKET, FACTORS)

        assert used_fallback is True
        assert result.score == 30.0

    @pytest.mark.asyncio
    async def test_failing_analyzer_uses_fallback(self) -> None:
        analyzer = AsyncMock()
        analyzer.analyze.side_effect = AnalyzerError("timeout")

        result, used_fallback = await analyze_with_fallback(analyzer, TRADE, MARKET, FACTORS)

        assert used_fallback is True
        assert result.reasoning == FALLBACK_REASONING

    @pytest.mark.asyncio
    async def test_successful_analyzer(self) -> None:
        analyzer = AsyncMock()
        analyzer.analyze.return_value = parse_analysis({"suspicionScore": 77})

        result, used_fallback = await analyze_with_fallback(analyzer, TRADE, MARKET, FACTORS)

        assert used_fallback is False
        assert result.score == 77.0
        assert result.level == SuspicionLevel.HIGH


class TestParsing:
    """Tests for response cleaning and validation."""

    def test_clean_json_strips_fences(self) -> None:
        assert clean_json('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert clean_json('```\n{"a": 1}```') == '{"a": 1}'
        assert clean_json('  {"a": 1}  ') == '{"a": 1}'
        assert clean_json("") == "{}"

    def test_parse_valid(self) -> None:
        result = parse_analysis(
            {
                "suspicionScore": 91,
                "reasoning": " Large longshot buy by a flagged wallet. ",
                "riskLevel": "CRITICAL",
                "factors": ["Insider", "", "Timing", "Size", "Extra"],
            }
        )

        assert result.score == 91.0
        assert result.level == SuspicionLevel.CRITICAL
        assert result.reasoning == "Large longshot buy by a flagged wallet."
        assert result.factors == ("Insider", "Timing", "Size")

    def test_score_is_clamped(self) -> None:
        assert parse_analysis({"suspicionScore": 140}).score == 100.0
        assert parse_analysis({"suspicionScore": -3}).score == 0.0

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {},
            {"suspicionScore": "high"},
            {"suspicionScore": True},
            {"suspicionScore": 50, "factors": "insider"},
            {"suspicionScore": float("nan")},
            {"suspicionScore": float("inf")},
            {"suspicionScore": float("-inf")},
        ],
    )
    def test_malformed(self, payload: Any) -> None:
        with pytest.raises(MalformedAnalysisError):
            parse_analysis(payload)

    def test_prompt_mentions_trade_and_wallet(self) -> None:
        stats = WalletStats(total_trades=4, win_rate=0.75, account_age_days=3)

        prompt = build_prompt(TRADE, MARKET, FACTORS, stats)

        assert '"Will X win?"' in prompt
        assert "BUY $35,000" in prompt
        assert "12.0 cents" in prompt
        assert "4 trades, 3 days old, win rate 75%" in prompt
        assert "Known insider wallet, Longshot bet (12%)" in prompt


class TestGeminiSuspicionAnalyzer:
    """Tests for the Gemini REST client."""

    @pytest.mark.asyncio
    async def test_analyze(self) -> None:
        """Test the request shape and response parsing."""
        captured: dict[str, Any] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["key"] = request.headers["x-goog-api-key"]
            captured["body"] = json.loads(request.content)
            text = (
                '```json\n{"suspicionScore": 88, "reasoning": "Informed", '
                '"factors": ["Whale"]}\n```'
            )
            return httpx.Response(200, json=gemini_response(text))

        analyzer = make_analyzer(handler)
        result = await analyzer.analyze(TRADE, MARKET, FACTORS, None)
        await analyzer.close()

        assert captured["url"] == "https://ai.test/models/gemini-test:generateContent"
        assert captured["key"] == "key-123"
        config = captured["body"]["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert result.score == 88.0
        assert result.level == SuspicionLevel.CRITICAL
        assert result.factors == ("Whale",)

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        analyzer = make_analyzer(lambda request: httpx.Response(429))

        with pytest.raises(AnalyzerError):
            await analyzer.analyze(TRADE, MARKET, FACTORS, None)

    @pytest.mark.asyncio
    async def test_unexpected_shape(self) -> None:
        analyzer = make_analyzer(lambda request: httpx.Response(200, json={"candidates": []}))

        with pytest.raises(MalformedAnalysisError, match="shape"):
            await analyzer.analyze(TRADE, MARKET, FACTORS, None)

    @pytest.mark.asyncio
    async def test_non_json_text(self) -> None:
        analyzer = make_analyzer(
            lambda request: httpx.Response(200, json=gemini_response("I think it is suspicious"))
        )

        with pytest.raises(MalformedAnalysisError, match="not valid JSON"):
            await analyzer.analyze(TRADE, MARKET, FACTORS, None)

    @pytest.mark.asyncio
    async def test_malformed_falls_back(self) -> None:
        """Test a garbage response degrades to the heuristic fallback."""
        analyzer = make_analyzer(
            lambda request: httpx.Response(200, json=gemini_response('{"suspicionScore": null}'))
        )

        result, used_fallback = await analyze_with_fallback(analyzer, TRADE, MARKET, FACTORS)

        assert used_fallback is True
        assert result.score == 30.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    async def test_non_finite_score_falls_back(self, literal: str) -> None:
        """Test NaN and Infinity scores are treated as malformed, not as 100."""
        text = f'{{"suspicionScore": {literal}, "reasoning": "x", "factors": []}}'
        analyzer = make_analyzer(
            lambda request: httpx.Response(200, json=gemini_response(text))
        )

        result, used_fallback = await analyze_with_fallback(
            analyzer, TRADE, MARKET, (*FACTORS, "Verified whale activity")
        )

        assert used_fallback is True
        assert result.score == 45.0
        assert result.reasoning == FALLBACK_REASONING
