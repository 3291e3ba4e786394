"""
Bundled default workflows (``ticketflow_config.seed``).

Installs the YAML workflows shipped in ``ticketflow_config/workflows``
through a ``WorkflowDefinitionService``.  Idempotent: a default workflow
is skipped when its type already has an active default, and a
non-default one when an active definition with the same type and name
exists.  The caller commits.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from ticketflow_config.loader import load_yaml_file
from ticketflow_kernel.domain.workflow import WorkflowDefinition
from ticketflow_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from ticketflow_services.definition_service import WorkflowDefinitionService

logger = get_logger("config.seed")

BUNDLED_WORKFLOWS_DIR = Path(__file__).parent / "workflows"


def bundled_workflow_files(directory: Path | None = None) -> list[Path]:
    """The workflow YAML files to seed, in name order."""
    return sorted((directory or BUNDLED_WORKFLOWS_DIR).glob("*.yaml"))


def seed_default_workflows(
    service: WorkflowDefinitionService,
    actor: str = "system",
    directory: Path | None = None,
) -> list[WorkflowDefinition]:
    """Create the bundled workflows that are not installed yet.

    Returns the definitions created by this call (empty on a re-run).

    Raises:
        InvalidWorkflowDefinitionError: a bundled file fails validation.
    """
    created: list[WorkflowDefinition] = []
    for path in bundled_workflow_files(directory):
        document = load_yaml_file(path)
        workflow_type = document["workflowType"]

        if document.get("isDefault", False):
            if service.get_default(workflow_type) is not None:
                logger.info(
                    "seed_workflow_skipped",
                    extra={"file": path.name, "workflow_type": workflow_type, "why": "default_exists"},
                )
                continue
        elif any(w.name == document["name"] for w in service.list_active(workflow_type)):
            logger.info(
                "seed_workflow_skipped",
                extra={"file": path.name, "workflow_type": workflow_type, "why": "name_exists"},
            )
            continue

        workflow = service.create(document, actor=actor)
        created.append(workflow)
        logger.info(
            "seed_workflow_created",
            extra={"file": path.name, "workflow_id": workflow.id, "workflow_type": workflow_type},
        )
    return created
