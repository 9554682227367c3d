"""Seed script — load sample data into the CourseFlow database.

Creates:
1. A demo owner and a handful of courses across every workflow stage
2. The built-in bulk templates ("Put Courses on Hold", "Priority Upgrade")

Idempotent: safe to run multiple times — skips if the built-in templates
already exist.

Usage:
    python -m scripts.seed          # against DATABASE_URL from .env
    pytest tests/scripts/test_seed.py  # against aiosqlite in-memory
"""

import asyncio
import sys
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from uuid_extensions import uuid7

from src.bulk.validator import CriteriaValidator
from src.db.tables import BulkTemplateRow, CourseRow
from src.repositories.bulk import TemplateRepository
from src.repositories.courses import CourseRepository

# Owner of seeded data. Seeded templates can only be changed by admins.
SYSTEM_ACTOR_ID = UUID("00000000-0000-7000-8000-000000000001")

# (title, status, priority, days until due)
SAMPLE_COURSES = [
    ("Onboarding Essentials", "pre_development", "medium", 60),
    ("Workplace Safety Refresher", "in_progress", "high", 21),
    ("Customer Service Excellence", "in_progress", "medium", 10),
    ("Data Privacy Fundamentals", "outlines", "critical", 7),
    ("Leadership Foundations", "storyboard", "medium", 45),
    ("Sales Negotiation Skills", "development", "low", 90),
    ("Project Management Basics", "on_hold", "medium", 120),
    ("Cybersecurity Awareness", "completed", "high", -14),
    ("Advanced Excel Reporting", "paused", "low", 30),
]

BUILTIN_TEMPLATES = [
    {
        "name": "Put Courses on Hold",
        "description": "Put selected courses on hold temporarily",
        "criteria": {"status": "in_progress"},
        "action": {"field": "status", "value": "on_hold"},
    },
    {
        "name": "Priority Upgrade",
        "description": (
            "Upgrade priority for medium-priority courses. Narrow to courses due "
            "soon with additional_criteria, e.g. {\"due_date\": {\"before\": ...}}."
        ),
        "criteria": {"priority": "medium"},
        "action": {"field": "priority", "value": "high"},
    },
]


async def seed_courses(session: AsyncSession, today: date | None = None) -> list[CourseRow]:
    """Create the sample courses, all owned by one demo owner."""
    repo = CourseRepository(session)
    today = today or date.today()
    owner_id = uuid7()
    rows = []
    for title, status, priority, due_in in SAMPLE_COURSES:
        rows.append(await repo.create(
            course_id=uuid7(),
            title=title,
            status=status,
            priority=priority,
            owner_id=owner_id,
            due_date=today + timedelta(days=due_in),
        ))
    return rows


async def seed_templates(session: AsyncSession) -> list[BulkTemplateRow]:
    """Create any built-in template that does not exist yet."""
    repo = TemplateRepository(session)
    validator = CriteriaValidator()
    rows = []
    for template in BUILTIN_TEMPLATES:
        if await repo.get_by_name(template["name"]) is not None:
            continue
        request = validator.validate(template["criteria"], template["action"])
        rows.append(await repo.create(
            template_id=uuid7(),
            name=template["name"],
            description=template["description"],
            criteria=request.criteria.to_json(),
            action=request.action.to_json(),
            created_by=SYSTEM_ACTOR_ID,
        ))
    return rows


async def seed_demo(session: AsyncSession) -> dict:
    """Idempotent demo seed: sample courses + built-in templates.

    Returns dict with keys: created (bool), course_count, template_count.
    If the built-in templates already exist, returns created=False and skips.
    """
    repo = TemplateRepository(session)
    if await repo.get_by_name(BUILTIN_TEMPLATES[0]["name"]) is not None:
        return {"created": False, "course_count": 0, "template_count": 0}

    courses = await seed_courses(session)
    templates = await seed_templates(session)
    return {
        "created": True,
        "course_count": len(courses),
        "template_count": len(templates),
    }


# ---------------------------------------------------------------------------
# CLI entry point: python -m scripts.seed
# ---------------------------------------------------------------------------


async def _run_seed() -> None:
    """Run the seed against the real database (idempotent)."""
    from src.db.session import async_session_factory

    async with async_session_factory() as session:
        result = await seed_demo(session)

        if not result["created"]:
            print("Demo data already seeded (built-in templates exist). Skipping.")
            return

        await session.commit()

        print("Seed complete.")
        print(f"  Courses:    {result['course_count']}")
        print(f"  Templates:  {result['template_count']}")
        print()
        _print_summary()


def _print_summary() -> None:
    """Print a table of the seeded courses."""
    print(f"  {'Course':<30} {'Status':<16} {'Priority':<10} {'Due in':>7}")
    print(f"  {'─' * 30} {'─' * 16} {'─' * 10} {'─' * 7}")
    for title, status, priority, due_in in SAMPLE_COURSES:
        print(f"  {title:<30} {status:<16} {priority:<10} {due_in:>6}d")


if __name__ == "__main__":
    asyncio.run(_run_seed())


def __getattr__(name: str):  # type: ignore[misc]
    """Allow `python -m scripts.seed` to work."""
    if name == "__main__":
        asyncio.run(_run_seed())
        sys.exit(0)
    raise AttributeError(name)
