"""Tests for logo comparison and classification"""
import pytest

from engine.ai_client import AnthropicClient
from engine.errors import SourceUnavailableError
from engine.image_analysis import LogoAnalyzer, should_run_vision
from engine.models import SignalSource
from fakes import FakeGateway, ai_client_returning, make_token

PNG = ("aGVsbG8=", "image/png")


def _gateway(*tokens):
    return FakeGateway(images={t.logo_url: PNG for t in tokens if t.logo_url})


class TestShouldRunVision:
    def test_needs_logo(self):
        assert not should_run_vision(make_token("X"), 0.0)

    def test_only_for_weak_text_signal(self):
        token = make_token("X", logo_url="https://img/x.png")
        assert should_run_vision(token, 0.3)
        assert not should_run_vision(token, 0.5)
        assert not should_run_vision(token, 0.95)


class TestCompareLogos:
    @pytest.mark.asyncio
    async def test_threshold(self):
        alpha = make_token("PEPE", logo_url="https://img/pepe.png")
        green = make_token("NIRE", logo_url="https://img/nire.png")
        other = make_token("BLOB", logo_url="https://img/blob.png")
        client = ai_client_returning([
            {"index": 0, "visualScore": 0.92, "visualReason": "Same frog, recolored"},
            {"index": 1, "visualScore": 0.3, "visualReason": "Different animal"},
        ])
        analyzer = LogoAnalyzer(client, _gateway(alpha, green, other))
        results = await analyzer.compare_logos(alpha, [green, other])
        assert len(results) == 1
        assert results[0].token.symbol == "NIRE"
        assert results[0].source == SignalSource.VISUAL_MATCH
        assert results[0].visual_score == 0.92
        assert results[0].visual_reason == "Same frog, recolored"

    @pytest.mark.asyncio
    async def test_sends_images(self):
        alpha = make_token("PEPE", logo_url="https://img/pepe.png")
        cand = make_token("NIRE", logo_url="https://img/nire.png")
        client = ai_client_returning([])
        await LogoAnalyzer(client, _gateway(alpha, cand)).compare_logos(alpha, [cand])
        content = client._client.messages.create.call_args.kwargs["messages"][0]["content"]
        images = [block for block in content if block["type"] == "image"]
        assert len(images) == 2
        assert images[0]["source"]["media_type"] == "image/png"

    @pytest.mark.asyncio
    async def test_no_alpha_logo(self):
        alpha = make_token("PEPE")
        cand = make_token("NIRE", logo_url="https://img/nire.png")
        client = ai_client_returning([])
        assert await LogoAnalyzer(client, _gateway(cand)).compare_logos(alpha, [cand]) == []
        client._client.messages.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_unfetchable_images_skip_call(self):
        alpha = make_token("PEPE", logo_url="https://img/pepe.png")
        cand = make_token("NIRE", logo_url="https://img/nire.png")
        client = ai_client_returning([])
        analyzer = LogoAnalyzer(client, FakeGateway(images={alpha.logo_url: PNG}))
        assert await analyzer.compare_logos(alpha, [cand]) == []
        client._client.messages.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_batch_is_empty(self):
        alpha = make_token("PEPE", logo_url="https://img/pepe.png")
        cand = make_token("NIRE", logo_url="https://img/nire.png")
        client = ai_client_returning([])
        client._client.messages.create.side_effect = SourceUnavailableError("overloaded")
        assert await LogoAnalyzer(client, _gateway(alpha, cand)).compare_logos(alpha, [cand]) == []

    @pytest.mark.asyncio
    async def test_unavailable_client(self):
        alpha = make_token("PEPE", logo_url="https://img/pepe.png")
        cand = make_token("NIRE", logo_url="https://img/nire.png")
        analyzer = LogoAnalyzer(AnthropicClient(api_key=""), _gateway(alpha, cand))
        assert await analyzer.compare_logos(alpha, [cand]) == []


class TestClassifyLogos:
    @pytest.mark.asyncio
    async def test_categories_lowercased(self):
        cat = make_token("NIRE", logo_url="https://img/nire.png")
        blob = make_token("BLOB", logo_url="https://img/blob.png")
        client = ai_client_returning([
            {"index": 0, "category": "Cats", "description": "Orange cat"},
            {"index": 1, "category": None, "description": "Abstract logo"},
        ])
        results = await LogoAnalyzer(client, _gateway(cat, blob)).classify_logos([cat, blob])
        by_symbol = {r.token.symbol: r for r in results}
        assert by_symbol["NIRE"].category == "cats"
        assert by_symbol["NIRE"].description == "Orange cat"
        assert by_symbol["BLOB"].category is None

    @pytest.mark.asyncio
    async def test_cached_per_token(self):
        cat = make_token("NIRE", logo_url="https://img/nire.png")
        client = ai_client_returning([{"index": 0, "category": "cats", "description": "cat"}])
        analyzer = LogoAnalyzer(client, _gateway(cat))
        await analyzer.classify_logos([cat])
        again = await analyzer.classify_logos([cat])
        assert again[0].category == "cats"
        assert client._client.messages.create.await_count == 1

    @pytest.mark.asyncio
    async def test_tokens_without_logos_skipped(self):
        client = ai_client_returning([])
        assert await LogoAnalyzer(client, FakeGateway()).classify_logos([make_token("X")]) == []
        client._client.messages.create.assert_not_called()
