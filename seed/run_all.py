"""
Main seed runner script.
This script runs all seeding operations in the correct order.

Usage:
    python -m seed.run_all
"""

from sqlmodel import Session

from utils.database import get_engine, init_db

from .intake_template_seed import DEFAULT_QUESTIONS, seed_default_template


def seed_intake_templates(organization_id=None):
    """Seed the default intake meeting template for one scope."""
    scope = organization_id or "global"
    print(f"Seeding default intake template ({scope} scope)...")

    with Session(get_engine()) as db:
        template = seed_default_template(db, organization_id=organization_id)
        if template is None:
            print(f"✓ Scope '{scope}' already has a default template (skipped)")
        else:
            print(f"✓ Created '{template.name}' with {len(DEFAULT_QUESTIONS)} questions ({template.id})")


def run_all_seeds():
    """Run all seed operations."""
    print("=" * 60)
    print("STARTING ALL SEEDING OPERATIONS")
    print("=" * 60)
    print()

    init_db()
    seed_intake_templates()

    print()
    print("=" * 60)
    print("ALL SEEDING OPERATIONS COMPLETED")
    print("=" * 60)


if __name__ == "__main__":
    run_all_seeds()
