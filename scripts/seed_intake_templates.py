"""
Seeder script for the default intake meeting template.

Installs the "Role Discussion | Intake Meeting" template as the default of
the global scope and of any organizations passed on the command line.
Scopes that already have a default are left alone.

Usage:
    python scripts/seed_intake_templates.py
    python scripts/seed_intake_templates.py acme-corp globex
"""

import sys
from pathlib import Path

# Add parent directory to path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

from seed.run_all import seed_intake_templates
from utils.database import init_db


def main():
    organizations = sys.argv[1:]

    print("=" * 60)
    print("Intake Template Seeder")
    print("=" * 60)

    init_db()
    seed_intake_templates(None)
    for organization_id in organizations:
        seed_intake_templates(organization_id)

    print("=" * 60)
    print("Seeding completed!")


if __name__ == "__main__":
    main()
