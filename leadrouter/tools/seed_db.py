"""Seed database from CSV files (agents, leads) and an optional rules JSON file.

Usage:
    python -m leadrouter.tools.seed_db
    python -m leadrouter.tools.seed_db --data-dir data
    python -m leadrouter.tools.seed_db --drop  # drop existing data first
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leadrouter.adapters.csv_loader.loader import load_agents, load_leads
from leadrouter.adapters.persistence.database import async_session_factory
from leadrouter.adapters.persistence.models import AgentModel, AssignmentRuleModel, LeadModel
from leadrouter.adapters.persistence.repositories import SqlRuleRepository
from leadrouter.adapters.rule_codec import rule_set_from_dict
from leadrouter.config import settings

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)


async def _drop_data(session: AsyncSession) -> None:
    for model in [LeadModel, AgentModel, AssignmentRuleModel]:
        await session.execute(delete(model))
    await session.commit()
    logger.info("Dropped all existing data")


async def seed(data_dir: Path, drop: bool = False) -> dict[str, int]:
    """Main seed function. Returns counts of seeded records."""
    counts = {"agents": 0, "leads": 0, "rules": 0}

    agent_csv = _find_file(data_dir, "*.csv", ["agents", "users", "team"])
    lead_csv = _find_file(data_dir, "*.csv", ["leads", "prospects"])
    rules_json = _find_file(data_dir, "*.json", ["assignment_rules", "rules"])

    if not agent_csv:
        raise FileNotFoundError(
            f"No agents CSV found in {data_dir}. Expected something like agents.csv"
        )

    async with async_session_factory() as session:
        if drop:
            await _drop_data(session)

        # 1. Agents
        for ad in load_agents(agent_csv):
            if await session.get(AgentModel, ad["id"]):
                logger.debug("Agent '%s' already exists, skipping", ad["id"])
                continue
            session.add(AgentModel(
                id=ad["id"],
                name=ad["name"],
                location=ad["location"],
                specializations=sorted(pt.value for pt in ad["specializations"]),
                max_capacity=ad["max_capacity"],
                current_lead_count=ad["current_lead_count"],
                conversion_rate_pct=ad["conversion_rate_pct"],
                avg_response_time_minutes=ad["avg_response_time_minutes"],
                closed_deals=ad["closed_deals"],
                availability=ad["availability"].value,
            ))
            counts["agents"] += 1
        await session.commit()

        # 2. Leads (if CSV exists)
        if lead_csv:
            for ld in load_leads(lead_csv):
                if await session.get(LeadModel, ld["id"]):
                    logger.debug("Lead '%s' already exists, skipping", ld["id"])
                    continue
                session.add(LeadModel(
                    id=ld["id"],
                    property_type=ld["property_type"].value if ld["property_type"] else None,
                    preferred_location=ld["preferred_location"],
                    budget_min=ld["budget_min"],
                    budget_max=ld["budget_max"],
                    lead_score=ld["lead_score"],
                    source=ld["source"],
                    assigned_agent_id=ld["assigned_agent_id"],
                ))
                counts["leads"] += 1
            await session.commit()
        else:
            logger.info("No leads CSV found — skipping lead import")

        # 3. Rules (if JSON exists); replaces whatever is stored
        if rules_json:
            rule_set = rule_set_from_dict(json.loads(rules_json.read_text(encoding="utf-8")))
            saved = await SqlRuleRepository(session).replace_all(
                geolocation=rule_set.geolocation,
                capacity=rule_set.capacity,
                specialization=rule_set.specialization,
            )
            await session.commit()
            counts["rules"] = (
                len(saved.geolocation) + len(saved.capacity) + len(saved.specialization)
            )

    logger.info(
        "Seed complete: %d agents, %d leads, %d rules",
        counts["agents"], counts["leads"], counts["rules"],
    )
    return counts


def _find_file(data_dir: Path, pattern: str, name_hints: list[str]) -> Path | None:
    """Find a file matching any of the name hints."""
    for f in sorted(data_dir.glob(pattern)):
        fname_lower = f.stem.lower()
        for hint in name_hints:
            if hint in fname_lower:
                logger.info("Found %s (matched hint '%s')", f.name, hint)
                return f
    return None


async def _verify_data() -> None:
    """Print sanity checks after seeding."""
    async with async_session_factory() as session:
        agents = (await session.execute(select(AgentModel))).scalars().all()
        lead_count = (await session.execute(select(func.count(LeadModel.id)))).scalar_one()
        assigned = (
            await session.execute(
                select(func.count(LeadModel.id)).where(LeadModel.assigned_agent_id.is_not(None))
            )
        ).scalar_one()
        rules = (await session.execute(select(AssignmentRuleModel))).scalars().all()

        print(f"\n{'='*50}")
        print("SEED VERIFICATION")
        print(f"{'='*50}")
        print(f"Agents: {len(agents)}")
        print(f"Leads:  {lead_count} ({assigned} assigned)")
        print(f"Rules:  {len(rules)}")

        over = [a.id for a in agents if a.current_lead_count > a.max_capacity]
        print(f"Agents over capacity: {over or 'none'}")

        availability: dict[str, int] = {}
        for a in agents:
            availability[a.availability] = availability.get(a.availability, 0) + 1
        print(f"Availability distribution: {availability}")

        by_type: dict[str, int] = {}
        for r in rules:
            by_type[r.rule_type] = by_type.get(r.rule_type, 0) + 1
        print(f"Rules by type: {by_type}")
        print(f"{'='*50}\n")


def main():
    parser = argparse.ArgumentParser(description="Seed the lead assignment database")
    parser.add_argument(
        "--data-dir", type=str, default=settings.csv_data_path,
        help="Directory containing agents/leads CSV and rules JSON (default: CSV_DATA_PATH)",
    )
    parser.add_argument(
        "--drop", action="store_true",
        help="Drop existing data before seeding",
    )
    parser.add_argument(
        "--verify-only", action="store_true",
        help="Only run verification, don't seed",
    )
    args = parser.parse_args()

    data_dir = Path(args.data_dir)
    if not args.verify_only and not data_dir.exists():
        logger.error("Data directory not found: %s", data_dir)
        sys.exit(1)

    if args.verify_only:
        asyncio.run(_verify_data())
    else:
        async def run_all():
            await seed(data_dir, drop=args.drop)
            await _verify_data()
        asyncio.run(run_all())


if __name__ == "__main__":
    main()
