#!/usr/bin/env python3
"""
Create the workflow tables and install the bundled default workflows.

Safe to re-run: workflows that are already installed are skipped.

Usage:
    python3 scripts/seed_workflows.py [--settings settings.yaml] [--database-url URL]
"""

import argparse
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main(argv=None) -> int:
    from ticketflow_config.seed import seed_default_workflows
    from ticketflow_config.settings import load_settings
    from ticketflow_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from ticketflow_kernel.logging_config import configure_logging
    from ticketflow_services.definition_service import WorkflowDefinitionService

    parser = argparse.ArgumentParser(description="Seed the bundled default workflows.")
    parser.add_argument("--settings", type=Path, help="Engine settings YAML file")
    parser.add_argument("--database-url", help="Overrides the configured database URL")
    parser.add_argument("--actor", default="system", help="Recorded as created_by")
    args = parser.parse_args(argv)

    settings = load_settings(args.settings)
    configure_logging(level=settings.log_level)
    url = args.database_url or settings.database_url
    init_engine_from_url(url)
    create_tables()

    with session_scope() as session:
        created = seed_default_workflows(WorkflowDefinitionService(session), actor=args.actor)

    if not created:
        print("Nothing to seed; bundled workflows are already installed.")
    for workflow in created:
        print(f"Created {workflow.workflow_type.value} workflow '{workflow.name}' ({workflow.id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
