"""Sample institutional content for development databases."""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Event, News, Program, School

logger = logging.getLogger(__name__)


SCHOOLS = [
    {
        "name": "KeMU Business School",
        "slug": "kemu-business-school",
        "overview": (
            "Excellence in business administration, economics, finance, and management "
            "education with industry-focused programmes."
        ),
    },
    {
        "name": "School of Computing and Informatics",
        "slug": "school-of-computing-and-informatics",
        "overview": (
            "Cutting-edge programmes in computer science, information technology, data "
            "science, and cybersecurity."
        ),
    },
    {
        "name": "School of Health Sciences",
        "slug": "school-of-health-sciences",
        "overview": (
            "Excellence in nursing, nutrition, public health, and health systems "
            "management education."
        ),
    },
    {
        "name": "School of Law",
        "slug": "school-of-law",
        "overview": (
            "Comprehensive legal education preparing students for careers in legal "
            "practice and justice."
        ),
    },
]

PROGRAMS = [
    {
        "title": "BSc. Computer Science",
        "slug": "bsc-computer-science",
        "degree_type": "Undergraduate",
        "duration": "4 Years",
        "overview": (
            "Comprehensive program covering software engineering, artificial "
            "intelligence, and computer systems."
        ),
        "requirements": "KCSE mean grade C+ with C+ in Mathematics and Physics",
        "school": "school-of-computing-and-informatics",
    },
    {
        "title": "BSc. Information Technology",
        "slug": "bsc-information-technology",
        "degree_type": "Undergraduate",
        "duration": "4 Years",
        "overview": (
            "Comprehensive IT program covering networking, database management, and "
            "web development."
        ),
        "requirements": "KCSE mean grade C+ with C+ in Mathematics",
        "school": "school-of-computing-and-informatics",
    },
    {
        "title": "Bachelor of Commerce",
        "slug": "bachelor-of-commerce",
        "degree_type": "Undergraduate",
        "duration": "4 Years",
        "overview": (
            "Business and commerce degree preparing students for careers in "
            "accounting, finance, and management."
        ),
        "requirements": "KCSE mean grade C+ with C+ in Mathematics",
        "school": "kemu-business-school",
    },
    {
        "title": "Master of Business Administration (MBA)",
        "slug": "mba",
        "degree_type": "Postgraduate",
        "duration": "2 Years",
        "overview": (
            "Transform your career with advanced business strategy, leadership, "
            "finance, and marketing skills."
        ),
        "requirements": "Bachelor's degree with at least Second Class Honours",
        "school": "kemu-business-school",
    },
    {
        "title": "BSc. Nursing",
        "slug": "bsc-nursing",
        "degree_type": "Undergraduate",
        "duration": "4 Years",
        "overview": "Become a registered nurse with clinical and theoretical expertise.",
        "requirements": "KCSE mean grade C+ with C+ in Biology, Chemistry, and Mathematics",
        "school": "school-of-health-sciences",
    },
    {
        "title": "Master of Public Health",
        "slug": "mph",
        "degree_type": "Postgraduate",
        "duration": "2 Years",
        "overview": (
            "Address critical health challenges with comprehensive training in "
            "epidemiology and health policy."
        ),
        "requirements": "Bachelor's degree in health-related field",
        "school": "school-of-health-sciences",
    },
    {
        "title": "Bachelor of Laws (LLB)",
        "slug": "llb",
        "degree_type": "Undergraduate",
        "duration": "4 Years",
        "overview": (
            "Comprehensive legal education preparing students for careers in legal "
            "practice and justice."
        ),
        "requirements": "KCSE mean grade B+ with B+ in English",
        "school": "school-of-law",
    },
]

NEWS = [
    {
        "title": "Trimester 3 Academic Calendar Released",
        "slug": "trimester-3-calendar",
        "summary": "Registration for new and continuing students runs for the first week of the trimester.",
        "days_ago": 30,
    },
    {
        "title": "KeMU Celebrates Over 32,000 Alumni Worldwide",
        "slug": "kemu-alumni-milestone",
        "summary": (
            "Kenya Methodist University marks a significant milestone with over 32,000 "
            "alumni making an impact globally."
        ),
        "days_ago": 45,
    },
    {
        "title": "New State-of-the-Art Computer Lab Opens",
        "slug": "new-computer-lab-opens",
        "summary": (
            "The School of Computing and Informatics opens a new state-of-the-art "
            "computer laboratory."
        ),
        "days_ago": 7,
    },
]

EVENTS = [
    {
        "title": "Registration and Classes Begin",
        "venue": "All Campuses (Meru, Nairobi, Mombasa)",
        "details": "New and continuing students register during the first week; lectures begin the week after.",
        "days_ahead": 21,
    },
    {
        "title": "Students Interactive Forum",
        "venue": "Main Campus, Meru",
        "details": "The Registrar's trimester forum with all students.",
        "days_ahead": 45,
    },
    {
        "title": "Graduation Ceremony",
        "venue": "KeMU Graduation Square, Kaaga, off Meru-Maua Highway, Meru",
        "details": (
            "For all students who have satisfied academic requirements and met financial "
            "obligations. Ceremony runs from 8:20 AM to 5:00 PM."
        ),
        "days_ahead": 120,
    },
]


async def seed_content(session: AsyncSession, now: datetime | None = None) -> dict[str, int]:
    """Insert the sample content that is not already present.

    Schools, programs and news are matched by slug, events by title, so
    running the seed twice adds nothing. Dates are relative to `now` so
    the events stay upcoming.

    Returns:
        Number of rows created per section.
    """
    now = now or datetime.now(timezone.utc)
    created = {"schools": 0, "programs": 0, "news": 0, "events": 0}

    existing_schools = {
        school.slug: school for school in (await session.execute(select(School))).scalars().all()
    }
    for data in SCHOOLS:
        if data["slug"] not in existing_schools:
            school = School(**data)
            session.add(school)
            existing_schools[data["slug"]] = school
            created["schools"] += 1
    await session.flush()

    program_slugs = set((await session.execute(select(Program.slug))).scalars().all())
    for data in PROGRAMS:
        if data["slug"] in program_slugs:
            continue
        fields = {k: v for k, v in data.items() if k != "school"}
        session.add(Program(**fields, school_id=existing_schools[data["school"]].id))
        created["programs"] += 1

    news_slugs = set((await session.execute(select(News.slug))).scalars().all())
    for data in NEWS:
        if data["slug"] in news_slugs:
            continue
        session.add(
            News(
                title=data["title"],
                slug=data["slug"],
                summary=data["summary"],
                published_at=now - timedelta(days=data["days_ago"]),
            )
        )
        created["news"] += 1

    event_titles = set((await session.execute(select(Event.title))).scalars().all())
    for data in EVENTS:
        if data["title"] in event_titles:
            continue
        session.add(
            Event(
                title=data["title"],
                date=now + timedelta(days=data["days_ahead"]),
                venue=data["venue"],
                details=data["details"],
            )
        )
        created["events"] += 1

    await session.flush()
    logger.info("Seeded content: %s", created)
    return created
