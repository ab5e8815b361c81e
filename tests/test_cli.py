"""Tests for the operator CLI and sample content seeding."""

import pytest
from sqlalchemy import func, select
from typer.testing import CliRunner

from app.cli import app as cli_app
from app.core.knowledge import KnowledgeBase
from app.db.models import Event, Program, School
from app.db.seed import EVENTS, NEWS, PROGRAMS, SCHOOLS, seed_content
from conftest import NOW

runner = CliRunner()


class TestCommands:
    def test_version(self):
        result = runner.invoke(cli_app, ["version"])
        assert result.exit_code == 0
        assert "Campus Assistant v" in result.output

    def test_info(self):
        result = runner.invoke(cli_app, ["info"])
        assert result.exit_code == 0
        assert "Institution:" in result.output
        assert "LLM Model:" in result.output

    def test_preview_unknown_section(self):
        result = runner.invoke(cli_app, ["kb", "preview", "--section", "vacancies"])
        assert result.exit_code == 1
        assert "Unknown section" in result.output

    def test_stats_on_empty_database(self):
        result = runner.invoke(cli_app, ["kb", "stats"])
        assert result.exit_code == 0
        assert "Estimated tokens" in result.output


class TestSeed:
    @pytest.mark.asyncio
    async def test_seed_content(self, session_factory):
        async with session_factory() as session:
            created = await seed_content(session, now=NOW)
            await session.commit()

        assert created == {
            "schools": len(SCHOOLS),
            "programs": len(PROGRAMS),
            "news": len(NEWS),
            "events": len(EVENTS),
        }

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, session_factory):
        async with session_factory() as session:
            await seed_content(session, now=NOW)
            await session.commit()
        async with session_factory() as session:
            created = await seed_content(session, now=NOW)
            await session.commit()

            assert set(created.values()) == {0}
            programs = (await session.execute(select(func.count()).select_from(Program))).scalar_one()
            assert programs == len(PROGRAMS)

    @pytest.mark.asyncio
    async def test_seeded_events_are_upcoming(self, session_factory):
        async with session_factory() as session:
            await seed_content(session, now=NOW)
            await session.commit()

        snapshot = await KnowledgeBase(session_factory, clock=lambda: NOW).build_snapshot()

        assert len(snapshot.raw["events"]) == len(EVENTS)
        assert "School of Computing and Informatics" in snapshot.schools

    @pytest.mark.asyncio
    async def test_programs_linked_to_schools(self, session_factory):
        async with session_factory() as session:
            await seed_content(session, now=NOW)
            await session.commit()

            rows = (
                await session.execute(select(Program.slug, School.slug).join(School))
            ).all()
            events = (await session.execute(select(func.count()).select_from(Event))).scalar_one()

        expected = {p["slug"]: p["school"] for p in PROGRAMS}
        assert dict(rows) == expected
        assert events == len(EVENTS)
