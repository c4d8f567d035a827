"""Unit tests for the analysis payload: parsing, validation and price coercion."""

import json

import pytest

from conftest import SAMPLE_ANALYSIS, FakeAnalyzer
from decorai.ai import (
    AnalysisError,
    OpenAIRoomAnalyzer,
    RoomAnalysis,
    build_analysis_prompt,
    build_analyzer,
    coerce_price,
    parse_analysis,
)
from decorai.settings import Settings


class TestCoercePrice:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1500.50", 1500.50),
            (1200, 1200.0),
            (89.9, 89.9),
            ("R$ 350", 350.0),
            ("1,299.99", 1299.99),
            ("200-300", 200.0),
            ("150,50", 150.50),
            ("R$ 150,50", 150.50),
            ("R$ 1.500,00", 1500.00),
            ("1.500.000,00", 1500000.00),
            ("1,500,000", 1500000.0),
        ],
    )
    def test_numeric_values(self, raw, expected):
        assert coerce_price(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["N/A", "", "price on request", None, True, "1.500", "1,500", "12.5.3"])
    def test_non_numeric_values_are_none(self, raw):
        assert coerce_price(raw) is None


class TestParseAnalysis:
    def test_valid_reply(self):
        analysis = parse_analysis(json.dumps(SAMPLE_ANALYSIS))
        assert analysis.style == "modern"
        assert analysis.color_palette == ["#F5F0E6", "#A67B5B", "#3E4A3D"]
        assert [item.name for item in analysis.items] == ["Sofa", "Floor lamp"]
        assert analysis.items[0].price_value() == 1500.50
        assert analysis.items[1].price_value() is None

    def test_to_json_keeps_original_keys_and_extras(self):
        payload = dict(SAMPLE_ANALYSIS, mood="calm")
        analysis = parse_analysis(json.dumps(payload))
        assert analysis.to_json() == payload

    def test_missing_optional_fields_get_defaults(self):
        analysis = parse_analysis(json.dumps({"analysis": "Small room", "suggestions": "Use mirrors"}))
        assert analysis.items == []
        assert analysis.color_palette == []
        assert analysis.style is None
        assert analysis.total_estimated_cost() is None

    def test_to_json_does_not_fill_in_absent_keys(self):
        payload = {"analysis": "Small room", "suggestions": "Use mirrors", "items": [{"name": "Mirror"}]}
        analysis = parse_analysis(json.dumps(payload))
        assert analysis.items[0].category == "other"
        assert analysis.to_json() == payload
        assert analysis.raw_items() == [{"name": "Mirror"}]

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_reply(self, text):
        with pytest.raises(AnalysisError, match="empty"):
            parse_analysis(text)

    def test_non_json_reply(self):
        with pytest.raises(AnalysisError, match="not valid JSON"):
            parse_analysis("Here are some ideas for your room!")

    def test_json_array_is_rejected(self):
        with pytest.raises(AnalysisError, match="not a JSON object"):
            parse_analysis("[1, 2, 3]")

    def test_shape_drift_is_rejected(self):
        with pytest.raises(AnalysisError, match="unexpected shape"):
            parse_analysis(json.dumps({"analysis": "ok", "items": [{"category": "decor"}]}))

    def test_total_estimated_cost_sums_parsable_prices(self):
        payload = dict(SAMPLE_ANALYSIS)
        payload["items"] = SAMPLE_ANALYSIS["items"] + [{"name": "Rug", "estimatedPrice": 499.5}]
        assert RoomAnalysis.model_validate(payload).total_estimated_cost() == 2000.0


class TestAnalyzer:
    @pytest.mark.asyncio
    async def test_analyze_room_sends_image_and_request(self):
        analyzer = FakeAnalyzer()
        analysis = await analyzer.analyze_room("https://blob.example.invalid/u/1.jpg", "More plants")
        assert analysis.suggestions == SAMPLE_ANALYSIS["suggestions"]
        call = analyzer.calls[0]
        assert call["image_url"] == "https://blob.example.invalid/u/1.jpg"
        assert call["max_tokens"] == 2000
        assert '"More plants"' in call["prompt"]

    @pytest.mark.asyncio
    async def test_provider_errors_become_analysis_errors(self):
        analyzer = FakeAnalyzer(reply=RuntimeError("connection reset"))
        with pytest.raises(AnalysisError, match="connection reset"):
            await analyzer.analyze_room("https://blob.example.invalid/u/1.jpg", "anything")

    @pytest.mark.asyncio
    async def test_variation_is_text_only(self):
        analyzer = FakeAnalyzer()
        await analyzer.generate_variation(SAMPLE_ANALYSIS, "industrial")
        call = analyzer.calls[0]
        assert call["image_url"] is None
        assert call["max_tokens"] == 1500
        assert '"industrial"' in call["prompt"]

    @pytest.mark.asyncio
    async def test_missing_key_fails_at_call_time(self):
        analyzer = OpenAIRoomAnalyzer(api_key="", model="gpt-4o", max_tokens=10, variation_max_tokens=10)
        with pytest.raises(AnalysisError, match="OPENAI_API_KEY"):
            await analyzer.analyze_room("https://blob.example.invalid/u/1.jpg", "anything")


def test_prompt_embeds_request():
    prompt = build_analysis_prompt("Cozy reading corner")
    assert '"Cozy reading corner"' in prompt
    assert '"colorPalette"' in prompt


def test_build_analyzer_selects_provider():
    analyzer = build_analyzer(Settings(AI_PROVIDER="openai", OPENAI_API_KEY="sk-test"))
    assert isinstance(analyzer, OpenAIRoomAnalyzer)
    assert analyzer.model == "gpt-4o"
    assert analyzer.max_tokens == 2000


def test_build_analyzer_rejects_unknown_provider():
    with pytest.raises(ValueError, match="Unsupported AI_PROVIDER"):
        build_analyzer(Settings(AI_PROVIDER="llama"))
