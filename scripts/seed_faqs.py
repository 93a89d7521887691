#!/usr/bin/env python3
"""
FAQ Seed Script

Loads a starter set of FAQ documents for one business and makes sure the
business has a budget row, so a fresh tenant can answer questions right
away.

Usage:
    python scripts/seed_faqs.py --business-id <uuid>
    DEFAULT_BUSINESS_ID=<uuid> python scripts/seed_faqs.py
"""

import argparse
import asyncio
import os
import sys
import uuid
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

from deskbot.config import get_settings
from deskbot.core.knowledge.faq import FaqEntry, FaqRepository
from deskbot.infra.database import Database
from deskbot.models.database import Budget, Business

SAMPLE_FAQS = [
    FaqEntry(
        "What are your business hours?",
        "We are open Monday to Saturday from 8:00 AM to 6:00 PM. "
        "We are closed on Sundays and public holidays.",
        "general",
    ),
    FaqEntry(
        "How much does AC cleaning cost?",
        "AC cleaning costs Rs. 2,500 for window units and Rs. 8,000-15,000 "
        "for centralized systems, depending on the number of units.",
        "pricing",
    ),
    FaqEntry(
        "Do you offer emergency services?",
        "We do not offer after-hours emergency services. For urgent matters, "
        "please contact us when we reopen at 8:00 AM.",
        "services",
    ),
    FaqEntry(
        "What areas do you cover?",
        "We provide services in Colombo, Dehiwala, Mount Lavinia, Moratuwa, "
        "and surrounding areas within a 15km radius.",
        "services",
    ),
    FaqEntry(
        "How long does AC cleaning take?",
        "Window AC cleaning takes 1-2 hours. Centralized AC cleaning takes "
        "3-4 hours depending on the number of units.",
        "services",
    ),
    FaqEntry(
        "Do I need to be home during the service?",
        "Yes, someone must be present during the service to provide access "
        "and answer any questions our technician may have.",
        "general",
    ),
    FaqEntry(
        "What payment methods do you accept?",
        "We accept cash, bank transfer, and mobile payments. "
        "Payment is due upon completion of service.",
        "payment",
    ),
    FaqEntry(
        "Can I reschedule my appointment?",
        "Yes, you can reschedule up to 24 hours before your appointment by "
        "contacting us. Same-day reschedules may not be possible.",
        "booking",
    ),
]


def print_result(name: str, success: bool, message: str = "") -> None:
    """Print check result."""
    status = "[PASS]" if success else "[FAIL]"
    color = "\033[92m" if success else "\033[91m"
    reset = "\033[0m"
    msg = f" - {message}" if message else ""
    print(f"  {color}{status}{reset} {name}{msg}")


async def ensure_budget(db: Database, business_id: uuid.UUID, limit_usd: float) -> bool:
    """Create the budget row if missing. Returns False if the business does not exist."""
    async with db.session() as session:
        if await session.get(Business, business_id) is None:
            return False
        if await session.get(Budget, business_id) is None:
            session.add(Budget(
                business_id=business_id,
                monthly_limit_usd=limit_usd,
                current_usage_usd=0.0,
                pending_usage_usd=0.0,
            ))
    return True


async def main(business_id: uuid.UUID, budget_usd: float) -> int:
    settings = get_settings()
    db = Database.from_url(settings.database_url)
    repo = FaqRepository(db)

    print(f"Seeding FAQs for business: {business_id}")
    try:
        if not await ensure_budget(db, business_id, budget_usd):
            print_result("business", False, "not found")
            return 1
        print_result("budget", True, f"${budget_usd:.2f}/month")

        seeded = 0
        for entry in SAMPLE_FAQS:
            await repo.add(business_id, entry)
            seeded += 1
            print_result(entry.question, True)
    finally:
        await db.close()

    print(f"\nSeeded {seeded}/{len(SAMPLE_FAQS)} FAQs")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed sample FAQs for a business")
    parser.add_argument("--business-id", default=os.getenv("DEFAULT_BUSINESS_ID"))
    parser.add_argument("--budget-usd", type=float, default=get_settings().monthly_budget_default_usd)
    args = parser.parse_args()

    if not args.business_id:
        parser.error("--business-id or DEFAULT_BUSINESS_ID is required")

    exit_code = asyncio.run(main(uuid.UUID(args.business_id), args.budget_usd))
    sys.exit(exit_code)
