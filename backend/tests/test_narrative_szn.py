"""Tests for narrative season clustering"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from engine.image_analysis import LogoClassification
from engine.models import ClusterSource, Heat
from engine.narrative_szn import (
    NarrativeSznEngine,
    build_classify_prompt,
    detect_category,
    heat_for,
    match_category,
    szn_score,
)
from fakes import ai_client_returning, make_token


def _doggo():
    return make_token("DOGGO", address="DOGGO", name="Doggo", price_change_24h=80)


def _meowz():
    return make_token("MEOWZ", address="MEOWZ", name="Meowz", price_change_24h=20)


def _woof(**kwargs):
    return make_token("WOOF", address="WOOF", name="Woof Woof", price_change_24h=10, **kwargs)


def _vision(*classifications):
    analyzer = MagicMock()
    analyzer.classify_logos = AsyncMock(return_value=list(classifications))
    return analyzer


class TestMatchCategory:
    def test_priority_order(self):
        assert match_category("trump dog") == "trump"
        assert match_category("a dog in a hat") == "dogs"

    def test_short_keywords_need_word_boundary(self):
        assert match_category("the ai meta") == "ai"
        assert match_category("rain on me") is None

    def test_detect_uses_symbol_name_and_description(self):
        token = make_token("ZZZ", name="Zzz", description="a squirrel with a nut")
        assert detect_category(token) == "animals"

    @pytest.mark.parametrize("description", [
        "we continue to build",
        "most dedicated holders",
        "bullish vibes",
        "change is coming",
    ])
    def test_description_needs_whole_words(self, description):
        assert detect_category(make_token("ZZZ", name="Zzz", description=description)) is None

    def test_description_plurals_match(self):
        assert detect_category(make_token("ZZZ", name="Zzz", description="for the dogs")) == "dogs"

    def test_symbol_and_name_win_over_description(self):
        token = make_token("POPCAT", name="Popcat", description="a trump supporter")
        assert detect_category(token) == "cats"

    def test_unmatched(self):
        assert detect_category(_woof()) is None


class TestScoring:
    def test_heat_thresholds(self):
        assert heat_for(80) == Heat.NUCLEAR
        assert heat_for(79) == Heat.HOT
        assert heat_for(60) == Heat.HOT
        assert heat_for(40) == Heat.WARM
        assert heat_for(39) == Heat.MILD

    def test_maxed_cluster(self):
        tokens = [make_token(f"T{i}", volume_24h=10_000_000, price_change_24h=300) for i in range(10)]
        assert szn_score(tokens) == (100, 100)

    def test_dead_cluster(self):
        tokens = [make_token("A", volume_24h=0, price_change_24h=-5), make_token("B", volume_24h=0, price_change_24h=-1)]
        assert szn_score(tokens) == (3, 0)


class TestKeywordClusters:
    def test_singleton_is_never_a_cluster(self):
        engine = NarrativeSznEngine()
        assert engine.keyword_clusters([_doggo(), _meowz(), _woof()]) == []

    def test_description_word_fragments_do_not_cluster(self):
        foo = make_token("FOO", address="FOO", name="Foo", description="we continue to build")
        bar = make_token("BAR", address="BAR", name="Bar", description="the most bullish inuendo")
        engine = NarrativeSznEngine()
        assert engine.keyword_clusters([foo, bar]) == []
        assert engine.keyword_pass([foo, bar])[1] == [foo, bar]

    def test_two_members_make_a_cluster(self):
        shibby = make_token("SHIBBY", address="SHIBBY", name="Shibby", price_change_24h=150)
        clusters = NarrativeSznEngine().keyword_clusters([_doggo(), shibby, _meowz()])
        assert len(clusters) == 1
        dogs = clusters[0]
        assert dogs.key == "dogs"
        assert dogs.label == "🐶 Dogs"
        assert dogs.source == ClusterSource.KEYWORD
        assert dogs.leader.symbol == "SHIBBY"
        assert [t.symbol for t in dogs.tokens] == ["SHIBBY", "DOGGO"]
        assert dogs.ai_enriched == 0
        assert dogs.to_dict()["id"] == "szn-dogs"


class TestEnrich:
    @pytest.mark.asyncio
    async def test_ai_adds_member_to_keyword_category(self):
        client = ai_client_returning([{"index": 0, "category": "dogs", "label": "Dogs", "novel": False}])
        clusters = await NarrativeSznEngine(client).enrich([_doggo(), _woof()])
        assert len(clusters) == 1
        assert clusters[0].key == "dogs"
        assert clusters[0].source == ClusterSource.MIXED
        assert clusters[0].ai_enriched == 1
        assert {t.symbol for t in clusters[0].tokens} == {"DOGGO", "WOOF"}

    @pytest.mark.asyncio
    async def test_novel_category(self):
        beep = make_token("BEEP", address="BEEP", name="Beep")
        boop = make_token("BOOP", address="BOOP", name="Boop")
        client = ai_client_returning([
            {"index": 0, "category": "robots", "label": "Robots", "novel": True},
            {"index": 1, "category": "Robots", "label": "Robots", "novel": True},
        ])
        clusters = await NarrativeSznEngine(client).enrich([beep, boop])
        assert clusters[0].key == "robots"
        assert clusters[0].label == "Robots"
        assert clusters[0].source == ClusterSource.AI

    @pytest.mark.asyncio
    async def test_ai_only_sees_unmatched_tokens(self):
        client = ai_client_returning([])
        await NarrativeSznEngine(client).enrich([_doggo(), _woof()])
        prompt = client._client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert "$WOOF" in prompt
        assert "$DOGGO" not in prompt

    @pytest.mark.asyncio
    async def test_vision_adds_member(self):
        woof = _woof(logo_url="https://img/woof.png")
        engine = NarrativeSznEngine(None, _vision(LogoClassification(woof, "dogs", "Shiba in a hoodie")))
        clusters = await engine.enrich([_doggo(), woof])
        assert clusters[0].key == "dogs"
        assert clusters[0].ai_enriched == 1

    @pytest.mark.asyncio
    async def test_ai_assignment_wins_over_vision(self):
        woof = _woof(logo_url="https://img/woof.png")
        client = ai_client_returning([{"index": 0, "category": "dogs", "label": "Dogs", "novel": False}])
        engine = NarrativeSznEngine(client, _vision(LogoClassification(woof, "cats", "Cat logo")))
        clusters = await engine.enrich([_doggo(), _meowz(), woof])
        assert [c.key for c in clusters] == ["dogs"]

    @pytest.mark.asyncio
    async def test_failed_ai_keeps_keyword_clusters(self):
        shibby = make_token("SHIBBY", address="SHIBBY", name="Shibby")
        client = ai_client_returning("not json at all")
        clusters = await NarrativeSznEngine(client).enrich([_doggo(), shibby, _woof()])
        assert [c.key for c in clusters] == ["dogs"]
        assert clusters[0].source == ClusterSource.KEYWORD

    @pytest.mark.asyncio
    async def test_political_figure_maps_to_known_category(self):
        engine = NarrativeSznEngine()
        assert engine._resolve("Political Figure", None)[0] == "political"
        assert engine._resolve("frog season", None)[0] == "frogs"
        assert engine._resolve("Robot Uprising", None) == ("robot-uprising", "Robot Uprising")


class TestClassifyPrompt:
    def test_lists_categories_and_tokens(self):
        prompt = build_classify_prompt([_woof()])
        assert "- dogs: 🐶 Dogs" in prompt
        assert "[0] $WOOF (Woof Woof)" in prompt
