import asyncio
import json
import os
import time
import unittest
from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from schemas.tenbagger_report import TenbaggerReport
from services.ai.tenbagger.analysis_service import analyze_stock
from services.ai.tenbagger.config import TenbaggerConfig
from services.ai.tenbagger.errors import AnalysisError, AnalysisErrorKind
from services.ai.tenbagger.methodology import DEFAULT_METHODOLOGY

NVDA_RAW = (
    '{"ticker":"NVDA","companyName":"NVIDIA Corp","verdict":"Strong Buy","potentialRating":9,'
    '"growthStage":"Growth","marketSize":{"tam":500,"sam":120,"som":20,"description":"AI chips"},'
    '"unitEconomics":{"ltv":5000,"cac":1000,"ratio":5,"isHealthy":true},'
    '"buyStrategy":{"currentPriceContext":"c","shortTerm":"s","mediumTerm":"m","longTerm":"l"},'
    '"investmentSummary":[]}'
)

CONFIG = TenbaggerConfig(timeout_ms=5_000)


def fake_response(text, chunks=()):
    return SimpleNamespace(
        text=text,
        prompt_feedback=None,
        candidates=[
            SimpleNamespace(
                finish_reason=None,
                grounding_metadata=SimpleNamespace(grounding_chunks=list(chunks)),
            )
        ],
    )


def fake_factory(generate, keys=None):
    def factory(api_key):
        if keys is not None:
            keys.append(api_key)
        return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate)))

    return factory


class AnalyzeStockTests(unittest.IsolatedAsyncioTestCase):
    async def test_nvda_end_to_end_without_grounding(self):
        generate = AsyncMock(return_value=fake_response(NVDA_RAW))
        result = await analyze_stock(
            "NVDA",
            config=CONFIG,
            api_key="test-key",
            client_factory=fake_factory(generate),
        )
        expected = json.loads(NVDA_RAW)
        expected["sources"] = []
        self.assertEqual(result, expected)
        TenbaggerReport.model_validate(result)

        system = generate.call_args.kwargs["config"].system_instruction
        self.assertIn(DEFAULT_METHODOLOGY, system)

    async def test_ticker_is_normalized(self):
        generate = AsyncMock(return_value=fake_response(NVDA_RAW))
        await analyze_stock("  nvda ", config=CONFIG, api_key="k", client_factory=fake_factory(generate))
        self.assertIn("NVDA", generate.call_args.kwargs["contents"])
        self.assertNotIn("nvda", generate.call_args.kwargs["contents"])

    async def test_empty_ticker_rejected_before_any_call(self):
        generate = AsyncMock()
        with self.assertRaises(ValueError):
            await analyze_stock("   ", config=CONFIG, api_key="k", client_factory=fake_factory(generate))
        generate.assert_not_called()

    async def test_custom_methodology_used_verbatim(self):
        generate = AsyncMock(return_value=fake_response(NVDA_RAW))
        methodology = "# House rules\nOnly count recurring revenue."
        await analyze_stock(
            "NVDA",
            methodology,
            config=CONFIG,
            api_key="k",
            client_factory=fake_factory(generate),
            today=date(2026, 10, 19),
        )
        system = generate.call_args.kwargs["config"].system_instruction
        self.assertIn(methodology, system)
        self.assertNotIn(DEFAULT_METHODOLOGY, system)
        self.assertIn("2026-10-19", system)

    async def test_configured_methodology_override(self):
        generate = AsyncMock(return_value=fake_response(NVDA_RAW))
        cfg = CONFIG.with_overrides(methodology_override="configured method")
        await analyze_stock("NVDA", config=cfg, api_key="k", client_factory=fake_factory(generate))
        self.assertIn("configured method", generate.call_args.kwargs["config"].system_instruction)

    async def test_grounding_appended_after_model_sources(self):
        record = json.loads(NVDA_RAW)
        record["sources"] = [{"title": "IR", "uri": "https://investor.nvidia.com"}]
        chunks = [
            SimpleNamespace(web=SimpleNamespace(title="Reuters", uri="https://reuters.com/nvda")),
            SimpleNamespace(web=None),
            SimpleNamespace(web=SimpleNamespace(title=None, uri="https://investor.nvidia.com")),
        ]
        generate = AsyncMock(return_value=fake_response("```json\n" + json.dumps(record) + "\n```", chunks))
        result = await analyze_stock("NVDA", config=CONFIG, api_key="k", client_factory=fake_factory(generate))
        self.assertEqual(
            result["sources"],
            [
                {"title": "IR", "uri": "https://investor.nvidia.com"},
                {"title": "Reuters", "uri": "https://reuters.com/nvda"},
                {"title": "Reference", "uri": "https://investor.nvidia.com"},
            ],
        )

    async def test_credential_resolved_at_call_time(self):
        keys = []
        generate = AsyncMock(return_value=fake_response(NVDA_RAW))
        factory = fake_factory(generate, keys)
        with patch.dict(os.environ, {"GEMINI_API_KEY": "first"}):
            await analyze_stock("NVDA", config=CONFIG, client_factory=factory)
        with patch.dict(os.environ, {"GEMINI_API_KEY": "second"}):
            await analyze_stock("NVDA", config=CONFIG, client_factory=factory)
            await analyze_stock("NVDA", config=CONFIG, api_key="callers-own", client_factory=factory)
        self.assertEqual(keys, ["first", "second", "callers-own"])

    async def test_missing_credential_classified(self):
        generate = AsyncMock()
        with patch.dict(os.environ, {"GEMINI_API_KEY": "", "GOOGLE_API_KEY": ""}):
            with self.assertRaises(AnalysisError) as ctx:
                await analyze_stock("NVDA", config=CONFIG, client_factory=fake_factory(generate))
        self.assertEqual(ctx.exception.kind, AnalysisErrorKind.CREDENTIAL_MISSING)
        self.assertTrue(ctx.exception.report.offer_alternate_credential)
        generate.assert_not_called()

    async def test_provider_failures_classified(self):
        cases = [
            (RuntimeError("429 RESOURCE_EXHAUSTED. You exceeded your current quota."), AnalysisErrorKind.QUOTA_EXCEEDED),
            (RuntimeError("400 INVALID_ARGUMENT. API key not valid."), AnalysisErrorKind.CREDENTIAL_INVALID),
            (RuntimeError("503 UNAVAILABLE. The model is overloaded."), AnalysisErrorKind.UNKNOWN_UPSTREAM),
        ]
        for exc, kind in cases:
            with self.subTest(kind=kind):
                generate = AsyncMock(side_effect=exc)
                with self.assertRaises(AnalysisError) as ctx:
                    await analyze_stock("NVDA", config=CONFIG, api_key="k", client_factory=fake_factory(generate))
                self.assertEqual(ctx.exception.kind, kind)
                self.assertIs(ctx.exception.__cause__, exc)
                generate.assert_awaited_once()

    async def test_unparseable_text_is_malformed(self):
        generate = AsyncMock(return_value=fake_response("I'm sorry, I can't produce that report."))
        with self.assertRaises(AnalysisError) as ctx:
            await analyze_stock("NVDA", config=CONFIG, api_key="k", client_factory=fake_factory(generate))
        self.assertEqual(ctx.exception.kind, AnalysisErrorKind.MALFORMED_RESPONSE)

    async def test_safety_block_classified(self):
        resp = fake_response("")
        resp.candidates[0].finish_reason = "SAFETY"
        generate = AsyncMock(return_value=resp)
        with self.assertRaises(AnalysisError) as ctx:
            await analyze_stock("NVDA", config=CONFIG, api_key="k", client_factory=fake_factory(generate))
        self.assertEqual(ctx.exception.kind, AnalysisErrorKind.SAFETY_BLOCKED)

    async def test_never_resolving_call_times_out_within_bound(self):
        async def hang(**kwargs):
            await asyncio.Event().wait()

        started = time.perf_counter()
        with self.assertRaises(AnalysisError) as ctx:
            await analyze_stock(
                "NVDA",
                config=TenbaggerConfig(timeout_ms=1000),
                api_key="k",
                client_factory=fake_factory(hang),
            )
        elapsed = time.perf_counter() - started
        self.assertEqual(ctx.exception.kind, AnalysisErrorKind.TIMEOUT)
        self.assertGreaterEqual(elapsed, 0.9)
        self.assertLess(elapsed, 2.0)

    async def test_concurrent_requests_are_independent(self):
        def record_for(symbol):
            data = json.loads(NVDA_RAW)
            data["ticker"] = symbol
            return json.dumps(data)

        async def slow_nvda(**kwargs):
            await asyncio.sleep(0.05)
            return fake_response(record_for("NVDA"))

        async def fast_amd(**kwargs):
            await asyncio.sleep(0.01)
            return fake_response(record_for("AMD"))

        nvda = AsyncMock(side_effect=slow_nvda)
        amd = AsyncMock(side_effect=fast_amd)

        r1, r2 = await asyncio.gather(
            analyze_stock("NVDA", config=CONFIG, api_key="a", client_factory=fake_factory(nvda)),
            analyze_stock("AMD", config=CONFIG, api_key="b", client_factory=fake_factory(amd)),
        )
        self.assertEqual(r1["ticker"], "NVDA")
        self.assertEqual(r2["ticker"], "AMD")
        self.assertIn("NVDA", nvda.call_args.kwargs["contents"])
        self.assertIn("AMD", amd.call_args.kwargs["contents"])


if __name__ == "__main__":
    unittest.main()
