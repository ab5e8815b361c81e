"""Knowledge snapshot, relevance selection and prompt composition.

The snapshot is rebuilt from the database on every request and never
cached, so a prompt always reflects the latest committed content.
Section selection is a coarse keyword heuristic that only exists to keep
prompt size down; it does not rank or retrieve.
"""

import asyncio
import logging
import math
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload, selectinload

from app.db.models import Event, News, Program, School

logger = logging.getLogger(__name__)


class Section(StrEnum):
    """Knowledge snapshot sections, in prompt order."""

    SCHOOLS = "schools"
    PROGRAMS = "programs"
    NEWS = "news"
    EVENTS = "events"


SECTION_ORDER: tuple[Section, ...] = (
    Section.SCHOOLS,
    Section.PROGRAMS,
    Section.NEWS,
    Section.EVENTS,
)

DEFAULT_SECTIONS = frozenset({Section.PROGRAMS, Section.SCHOOLS})


# Relevance selection


@dataclass(frozen=True)
class KeywordRule:
    """A keyword family and the sections it switches on."""

    name: str
    pattern: re.Pattern[str]
    sections: frozenset[Section]

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(name: str, keywords: list[str], *sections: Section) -> KeywordRule:
    return KeywordRule(
        name=name,
        pattern=re.compile("|".join(keywords)),
        sections=frozenset(sections),
    )


RELEVANCE_RULES: tuple[KeywordRule, ...] = (
    _rule(
        "programs",
        ["program", "course", "degree", "study", "major", "bsc", "mba", "master",
         "bachelor", "undergraduate", "postgraduate"],
        Section.PROGRAMS, Section.SCHOOLS,
    ),
    _rule(
        "schools",
        ["school", "faculty", "department", "computing", "business", "health", "science"],
        Section.SCHOOLS,
    ),
    _rule(
        "news",
        ["news", "announcement", "update", "latest", "recent", "new"],
        Section.NEWS,
    ),
    _rule(
        "events",
        ["event", "calendar", "graduation", "registration", "upcoming", "when"],
        Section.EVENTS,
    ),
    _rule(
        "admissions",
        ["admission", "apply", "requirement", "entry", "qualify", "enroll"],
        Section.PROGRAMS, Section.SCHOOLS,
    ),
)


def select_sections(
    user_message: str,
    rules: tuple[KeywordRule, ...] = RELEVANCE_RULES,
) -> frozenset[Section]:
    """Decide which knowledge sections to include for a message.

    Every matching rule contributes its sections. When nothing matches,
    programs and schools are included.
    """
    text = (user_message or "").lower()
    selected: set[Section] = set()
    for rule in rules:
        if rule.matches(text):
            selected |= rule.sections
    return frozenset(selected) if selected else DEFAULT_SECTIONS


# Formatting


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _format_date(value: datetime, month: str) -> str:
    return f"{value.strftime(month)} {value.day}, {value.year}"


def format_schools(schools: list[dict[str, Any]]) -> str:
    if not schools:
        return ""

    lines = ["SCHOOLS:"]
    for index, school in enumerate(schools, start=1):
        lines.append(f"{index}. {school['name']}")
        if school.get("overview"):
            lines.append(f"   Overview: {school['overview']}")
        if school.get("programs"):
            lines.append(f"   Programs: {', '.join(school['programs'])}")
        lines.append("")
    return "\n".join(lines) + "\n"


def format_programs(programs: list[dict[str, Any]], overview_max_chars: int = 200) -> str:
    if not programs:
        return ""

    lines = ["PROGRAMS:"]
    for program in programs:
        label = program["degree_type"]
        if program.get("duration"):
            label += f", {program['duration']}"
        lines.append("")
        lines.append(f"- {program['title']} ({label})")
        lines.append(f"  School: {program['school']}")
        if program.get("requirements"):
            lines.append(f"  Requirements: {program['requirements']}")
        if program.get("overview"):
            lines.append(f"  Overview: {_truncate(program['overview'], overview_max_chars)}")
    return "\n".join(lines) + "\n"


def format_news(news_items: list[dict[str, Any]]) -> str:
    if not news_items:
        return ""

    lines = ["RECENT NEWS:"]
    for item in news_items:
        lines.append(f"- {item['title']} ({_format_date(item['published_at'], '%b')})")
        if item.get("summary"):
            lines.append(f"  {item['summary']}")
    return "\n".join(lines) + "\n"


def format_events(events: list[dict[str, Any]]) -> str:
    if not events:
        return ""

    lines = ["UPCOMING EVENTS:"]
    for event in events:
        lines.append(f"- {event['title']} ({_format_date(event['date'], '%B')})")
        if event.get("venue"):
            lines.append(f"  Venue: {event['venue']}")
        if event.get("details"):
            lines.append(f"  Details: {event['details']}")
    return "\n".join(lines) + "\n"


# Snapshot


@dataclass(frozen=True)
class KnowledgeSnapshot:
    """Formatted, request-scoped view of institutional content."""

    schools: str = ""
    programs: str = ""
    news: str = ""
    events: str = ""
    raw: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    def section(self, section: Section) -> str:
        return getattr(self, section.value)

    @property
    def text(self) -> str:
        return "".join(self.section(s) for s in SECTION_ORDER)

    @property
    def estimated_tokens(self) -> int:
        return math.ceil(len(self.text) / 4)

    def context_for(self, sections: frozenset[Section]) -> str:
        """Join the selected, non-empty sections in fixed order."""
        parts = [
            self.section(s) + "\n"
            for s in SECTION_ORDER
            if s in sections and self.section(s)
        ]
        return "".join(parts).strip()


class KnowledgeBase:
    """Builds knowledge snapshots from the content tables.

    Each section is fetched concurrently on its own database session. A
    failing fetch is logged and yields an empty section instead of failing
    the whole snapshot.

    Example:
        kb = KnowledgeBase(get_session_factory())
        snapshot = await kb.build_snapshot()
        print(snapshot.programs)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        news_limit: int = 10,
        events_limit: int = 10,
        overview_max_chars: int = 200,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the knowledge base.

        Args:
            session_factory: Factory for independent async sessions.
            news_limit: Number of most recent news items to include.
            events_limit: Maximum number of upcoming events to include.
            overview_max_chars: Program overview truncation length.
            clock: Source of "now" for upcoming events.
        """
        self._session_factory = session_factory
        self.news_limit = news_limit
        self.events_limit = events_limit
        self.overview_max_chars = overview_max_chars
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _safe_fetch(
        self,
        name: str,
        fetch: Callable[[AsyncSession], Awaitable[list[dict[str, Any]]]],
    ) -> list[dict[str, Any]]:
        try:
            async with self._session_factory() as session:
                return await fetch(session)
        except Exception:
            logger.exception("Error fetching %s for knowledge base", name)
            return []

    async def _fetch_schools(self, session: AsyncSession) -> list[dict[str, Any]]:
        result = await session.execute(
            select(School).options(selectinload(School.programs)).order_by(School.name, School.id)
        )
        return [
            {
                "name": school.name,
                "overview": school.overview,
                "programs": [program.title for program in school.programs],
            }
            for school in result.scalars().all()
        ]

    async def _fetch_programs(self, session: AsyncSession) -> list[dict[str, Any]]:
        result = await session.execute(
            select(Program).options(joinedload(Program.school)).order_by(Program.title, Program.id)
        )
        return [
            {
                "title": program.title,
                "degree_type": program.degree_type,
                "duration": program.duration,
                "requirements": program.requirements,
                "overview": program.overview,
                "school": program.school.name,
            }
            for program in result.scalars().all()
        ]

    async def _fetch_news(self, session: AsyncSession) -> list[dict[str, Any]]:
        result = await session.execute(
            select(News)
            .order_by(News.published_at.desc(), News.id.desc())
            .limit(self.news_limit)
        )
        return [
            {"title": item.title, "summary": item.summary, "published_at": item.published_at}
            for item in result.scalars().all()
        ]

    async def _fetch_events(self, session: AsyncSession) -> list[dict[str, Any]]:
        result = await session.execute(
            select(Event)
            .where(Event.date >= self._clock())
            .order_by(Event.date.asc(), Event.id.asc())
            .limit(self.events_limit)
        )
        return [
            {
                "title": event.title,
                "date": event.date,
                "venue": event.venue,
                "details": event.details,
            }
            for event in result.scalars().all()
        ]

    async def build_snapshot(self) -> KnowledgeSnapshot:
        """Fetch all sections concurrently and format them."""
        schools, programs, news, events = await asyncio.gather(
            self._safe_fetch("schools", self._fetch_schools),
            self._safe_fetch("programs", self._fetch_programs),
            self._safe_fetch("news", self._fetch_news),
            self._safe_fetch("events", self._fetch_events),
        )
        return KnowledgeSnapshot(
            schools=format_schools(schools),
            programs=format_programs(programs, self.overview_max_chars),
            news=format_news(news),
            events=format_events(events),
            raw={"schools": schools, "programs": programs, "news": news, "events": events},
        )

    async def stats(self) -> dict[str, Any]:
        """Section sizes and an estimate of the full snapshot's token cost."""
        snapshot = await self.build_snapshot()
        return {
            "schools": len(snapshot.raw["schools"]),
            "programs": len(snapshot.raw["programs"]),
            "news": len(snapshot.raw["news"]),
            "events": len(snapshot.raw["events"]),
            "estimated_tokens": snapshot.estimated_tokens,
            "last_updated": datetime.now(timezone.utc),
        }


# Prompt composition


@dataclass(frozen=True)
class PromptComposer:
    """Wraps selected knowledge sections in the assistant's instructions."""

    assistant_name: str = "KeMU Assistant"
    institution_name: str = "Kenya Methodist University"

    @property
    def preamble(self) -> str:
        return f"""You are "{self.assistant_name}", a helpful AI assistant for \
{self.institution_name}'s website.

**Your role**:
- Greet warmly and professionally
- Provide accurate information about programs, admissions, news, and events
- Direct users to appropriate pages and resources
- Be concise but helpful (aim for 100-250 words unless detailed info is requested)

**Guidelines**:
- Use the knowledge base below to answer questions accurately
- For programs: Mention title, degree type, duration, requirements, and school
- For admissions: Reference specific program requirements from the knowledge base
- Link to /programs for program listings, /admissions for application info, /news for updates
- For information not in the knowledge base, direct users to contact the admissions office
- Never make up information - only use what's provided in the knowledge base

**Available pages**: /, /programs, /admissions, /news, /contact

---

KNOWLEDGE BASE (Current University Information):
"""

    closing: str = (
        "Always be helpful, provide accurate information from the knowledge base, "
        "and guide users to official channels for formal matters."
    )

    def compose(self, snapshot: KnowledgeSnapshot, sections: frozenset[Section]) -> str:
        """Build the system prompt from the selected sections."""
        context = snapshot.context_for(sections)
        return f"{self.preamble}\n{context}\n\n---\n\n{self.closing}"

    async def build(self, knowledge: KnowledgeBase, user_message: str) -> str:
        """Build a fresh snapshot and compose the prompt for a message."""
        snapshot = await knowledge.build_snapshot()
        return self.compose(snapshot, select_sections(user_message))
