import unittest

from google.genai import types
from pydantic import ValidationError

from schemas.tenbagger_report import AnalysisRequest, TenbaggerReport
from services.ai.tenbagger.response_schema import REQUIRED_FIELDS, build_response_schema


class ResponseSchemaTests(unittest.TestCase):
    def setUp(self):
        self.schema = build_response_schema()

    def test_top_level_required_subset(self):
        self.assertEqual(self.schema.type, types.Type.OBJECT)
        self.assertEqual(
            set(self.schema.required),
            {
                "ticker", "companyName", "verdict", "potentialRating", "growthStage",
                "marketSize", "unitEconomics", "investmentSummary", "buyStrategy",
            },
        )
        self.assertEqual(self.schema.required, REQUIRED_FIELDS)

    def test_optional_enrichments_declared_but_not_required(self):
        for name in (
            "penetrationRate", "businessModelReasoning", "pricingPower", "economiesOfScale",
            "bepAnalysis", "recentIssues", "sources",
        ):
            with self.subTest(field=name):
                self.assertIn(name, self.schema.properties)
                self.assertNotIn(name, self.schema.required)

    def test_nested_required_and_reasoning_optional(self):
        props = self.schema.properties
        self.assertEqual(props["marketSize"].required, ["tam", "sam", "som", "description"])
        self.assertNotIn("tamReasoning", props["marketSize"].required)
        self.assertEqual(props["unitEconomics"].required, ["ltv", "cac", "ratio", "isHealthy"])
        self.assertIn("contributionMarginReasoning", props["unitEconomics"].properties)
        self.assertEqual(
            props["buyStrategy"].required,
            ["currentPriceContext", "shortTerm", "mediumTerm", "longTerm"],
        )

    def test_growth_stage_enum(self):
        self.assertEqual(
            self.schema.properties["growthStage"].enum, ["Introduction", "Growth", "Maturity"]
        )

    def test_investment_summary_items(self):
        items = self.schema.properties["investmentSummary"]
        self.assertEqual(items.type, types.Type.ARRAY)
        self.assertEqual(
            set(items.items.properties), {"classification", "content", "investmentPoint"}
        )


class ReportModelTests(unittest.TestCase):
    def test_analysis_request_normalizes_ticker(self):
        self.assertEqual(AnalysisRequest(ticker="  brk.b ").ticker, "BRK.B")
        with self.assertRaises(ValidationError):
            AnalysisRequest(ticker="  ")
        with self.assertRaises(ValidationError):
            AnalysisRequest(ticker="X" * 21)

    def test_report_keeps_summary_order_and_extras(self):
        report = TenbaggerReport.model_validate(
            {
                "ticker": "NVDA",
                "companyName": "NVIDIA Corp",
                "verdict": "Buy",
                "potentialRating": 8,
                "growthStage": "Maturity",
                "marketSize": {"tam": 1, "sam": 1, "som": 1, "description": "d"},
                "unitEconomics": {"ltv": 1, "cac": 2, "ratio": 7, "isHealthy": False},
                "investmentSummary": [
                    {"classification": "first"},
                    {"classification": "second"},
                ],
                "buyStrategy": {"currentPriceContext": "c", "shortTerm": "s", "mediumTerm": "m", "longTerm": "l"},
                "analystNote": "kept",
            }
        )
        self.assertEqual([i.classification for i in report.investmentSummary], ["first", "second"])
        # ratio is whatever the model asserted
        self.assertEqual(report.unitEconomics.ratio, 7)
        self.assertEqual(report.sources, [])
        self.assertEqual(report.model_extra["analystNote"], "kept")


if __name__ == "__main__":
    unittest.main()
