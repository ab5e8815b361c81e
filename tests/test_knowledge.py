"""Tests for the knowledge snapshot, relevance selection and prompt composer."""

import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app.core.knowledge import (
    DEFAULT_SECTIONS,
    KnowledgeBase,
    KnowledgeSnapshot,
    PromptComposer,
    Section,
    format_events,
    format_news,
    format_programs,
    format_schools,
    select_sections,
)
from conftest import NOW


@pytest.fixture
def knowledge(seeded_factory) -> KnowledgeBase:
    return KnowledgeBase(seeded_factory, clock=lambda: NOW)


class TestSelectSections:
    def test_programs_bundle_schools(self):
        sections = select_sections("What programs do you offer in computing?")
        assert sections == {Section.PROGRAMS, Section.SCHOOLS}

    def test_schools_only(self):
        assert select_sections("Tell me about the law faculty") == {Section.SCHOOLS}

    def test_news(self):
        assert Section.NEWS in select_sections("Any announcements this week?")

    def test_events(self):
        assert select_sections("When is graduation?") == {Section.EVENTS}

    def test_admissions_bundle_programs_and_schools(self):
        sections = select_sections("How do I apply?")
        assert sections == {Section.PROGRAMS, Section.SCHOOLS}

    def test_no_match_defaults_to_programs_and_schools(self):
        sections = select_sections("Hello there")
        assert sections == DEFAULT_SECTIONS == {Section.PROGRAMS, Section.SCHOOLS}

    def test_case_insensitive(self):
        assert Section.EVENTS in select_sections("UPCOMING EVENTS?")

    def test_multiple_families_combine(self):
        sections = select_sections("Latest news about the MBA program and upcoming events")
        assert sections == {Section.PROGRAMS, Section.SCHOOLS, Section.NEWS, Section.EVENTS}

    def test_empty_message(self):
        assert select_sections("") == DEFAULT_SECTIONS


class TestFormatting:
    def test_format_schools(self):
        text = format_schools(
            [
                {"name": "School of Law", "overview": "Legal education.", "programs": ["LLB"]},
                {"name": "KeMU Business School", "overview": None, "programs": []},
            ]
        )
        assert text.startswith("SCHOOLS:\n1. School of Law\n")
        assert "   Overview: Legal education." in text
        assert "   Programs: LLB" in text
        assert "2. KeMU Business School" in text

    def test_format_programs_truncates_overview(self):
        text = format_programs(
            [
                {
                    "title": "BSc. Nursing",
                    "degree_type": "Undergraduate",
                    "duration": "4 Years",
                    "requirements": "KCSE C+",
                    "overview": "y" * 300,
                    "school": "School of Health Sciences",
                }
            ],
            overview_max_chars=200,
        )
        assert "- BSc. Nursing (Undergraduate, 4 Years)" in text
        assert "  School: School of Health Sciences" in text
        assert "  Requirements: KCSE C+" in text
        assert f"  Overview: {'y' * 200}..." in text
        assert "y" * 201 not in text

    def test_format_programs_without_duration(self):
        text = format_programs(
            [{"title": "MBA", "degree_type": "Postgraduate", "school": "Business"}]
        )
        assert "- MBA (Postgraduate)" in text

    def test_format_news_dates(self):
        text = format_news(
            [
                {
                    "title": "Lab Opens",
                    "summary": "New lab.",
                    "published_at": datetime(2025, 9, 1, tzinfo=timezone.utc),
                }
            ]
        )
        assert text == "RECENT NEWS:\n- Lab Opens (Sep 1, 2025)\n  New lab.\n"

    def test_format_events_dates(self):
        text = format_events(
            [
                {
                    "title": "Graduation",
                    "date": datetime(2026, 3, 15, tzinfo=timezone.utc),
                    "venue": "Graduation Square",
                    "details": None,
                }
            ]
        )
        assert text == "UPCOMING EVENTS:\n- Graduation (March 15, 2026)\n  Venue: Graduation Square\n"

    @pytest.mark.parametrize("formatter", [format_schools, format_programs, format_news, format_events])
    def test_empty_sections_render_nothing(self, formatter):
        assert formatter([]) == ""


class TestKnowledgeBase:
    @pytest.mark.asyncio
    async def test_snapshot_sections(self, knowledge):
        snapshot = await knowledge.build_snapshot()

        assert "1. KeMU Business School" in snapshot.schools
        assert "2. School of Computing and Informatics" in snapshot.schools
        assert "Programs: BSc. Computer Science, BSc. Information Technology" in snapshot.schools
        assert "  School: School of Computing and Informatics" in snapshot.programs
        assert f"{'x' * 200}..." in snapshot.programs

    @pytest.mark.asyncio
    async def test_news_most_recent_first(self, knowledge):
        snapshot = await knowledge.build_snapshot()
        assert snapshot.news.index("New Computer Lab Opens") < snapshot.news.index("Alumni Milestone")

    @pytest.mark.asyncio
    async def test_news_limit(self, seeded_factory):
        knowledge = KnowledgeBase(seeded_factory, news_limit=1, clock=lambda: NOW)
        snapshot = await knowledge.build_snapshot()
        assert len(snapshot.raw["news"]) == 1
        assert "Alumni Milestone" not in snapshot.news

    @pytest.mark.asyncio
    async def test_only_future_events_soonest_first(self, knowledge):
        snapshot = await knowledge.build_snapshot()

        assert "Past Orientation" not in snapshot.events
        assert snapshot.events.index("Registration Week") < snapshot.events.index(
            "Graduation Ceremony"
        )

    @pytest.mark.asyncio
    async def test_snapshot_is_idempotent(self, knowledge):
        first = await knowledge.build_snapshot()
        second = await knowledge.build_snapshot()
        assert first.text == second.text

    @pytest.mark.asyncio
    async def test_fetch_failure_degrades_to_empty_section(self, knowledge, caplog):
        async def broken(session):
            raise RuntimeError("news table unavailable")

        knowledge._fetch_news = broken

        with caplog.at_level(logging.ERROR, logger="app.core.knowledge"):
            snapshot = await knowledge.build_snapshot()

        assert snapshot.news == ""
        assert snapshot.raw["news"] == []
        assert "PROGRAMS:" in snapshot.programs
        assert any("news" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_empty_database(self, session_factory):
        snapshot = await KnowledgeBase(session_factory).build_snapshot()
        assert snapshot.text == ""

    @pytest.mark.asyncio
    async def test_stats(self, knowledge):
        stats = await knowledge.stats()

        assert stats["schools"] == 2
        assert stats["programs"] == 3
        assert stats["news"] == 2
        assert stats["events"] == 2
        assert stats["estimated_tokens"] > 0
        assert stats["last_updated"].tzinfo is not None


class TestKnowledgeSnapshot:
    def test_context_for_keeps_fixed_order(self):
        snapshot = KnowledgeSnapshot(schools="SCHOOLS:\n", programs="PROGRAMS:\n", news="RECENT NEWS:\n")
        context = snapshot.context_for(frozenset({Section.NEWS, Section.SCHOOLS}))

        assert context.index("SCHOOLS:") < context.index("RECENT NEWS:")
        assert "PROGRAMS:" not in context

    def test_estimated_tokens_rounds_up(self):
        snapshot = KnowledgeSnapshot(schools="abcde")
        assert snapshot.estimated_tokens == 2


class TestPromptComposer:
    @pytest.mark.asyncio
    async def test_computing_programs_question(self, knowledge):
        composer = PromptComposer()
        prompt = await composer.build(knowledge, "What programs do you offer in computing?")

        assert "PROGRAMS:" in prompt
        assert "SCHOOLS:" in prompt
        assert "School: School of Computing and Informatics" in prompt
        assert "RECENT NEWS:" not in prompt
        assert "UPCOMING EVENTS:" not in prompt

    @pytest.mark.asyncio
    async def test_default_sections(self, knowledge):
        prompt = await PromptComposer().build(knowledge, "Hello")

        assert "SCHOOLS:" in prompt
        assert "PROGRAMS:" in prompt
        assert "RECENT NEWS:" not in prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("message", "has_news"),
        [
            ("What's the latest news?", True),
            ("Any recent announcements?", True),
            ("What are the entry requirements for nursing?", False),
            ("Hi", False),
        ],
    )
    async def test_news_section_iff_news_vocabulary(self, knowledge, message, has_news):
        prompt = await PromptComposer().build(knowledge, message)
        assert ("RECENT NEWS:" in prompt) is has_news

    @pytest.mark.asyncio
    async def test_schools_before_programs_before_events(self, knowledge):
        prompt = await PromptComposer().build(
            knowledge, "Upcoming events for the computer science program?"
        )
        assert prompt.index("SCHOOLS:") < prompt.index("PROGRAMS:") < prompt.index("UPCOMING EVENTS:")

    def test_preamble_and_closing(self):
        composer = PromptComposer(assistant_name="Test Bot", institution_name="Test University")
        prompt = composer.compose(KnowledgeSnapshot(), frozenset({Section.PROGRAMS}))

        assert prompt.startswith('You are "Test Bot", a helpful AI assistant for Test University')
        assert "KNOWLEDGE BASE" in prompt
        assert prompt.endswith(composer.closing)

    @pytest.mark.asyncio
    async def test_build_fetches_fresh_snapshot(self):
        knowledge = MagicMock(spec=KnowledgeBase)
        knowledge.build_snapshot.return_value = KnowledgeSnapshot(programs="PROGRAMS:\n- X\n")

        prompt = await PromptComposer().build(knowledge, "programs?")

        knowledge.build_snapshot.assert_awaited_once()
        assert "- X" in prompt
