"""
ticketflow_config -- Workflow documents, engine settings and seed data.

Responsibility:
    Parse YAML/JSON workflow documents into kernel domain types, validate
    them at authoring time, load engine settings and install the bundled
    default workflows.

Architecture position:
    Configuration -- sits above ``ticketflow_kernel`` and below
    ``ticketflow_services``.  The kernel and the engines never import
    from this package.
"""

from ticketflow_config.loader import (
    compute_checksum,
    document_from_body,
    load_workflow_file,
    load_yaml_file,
    parse_definition_body,
    parse_workflow_document,
)
from ticketflow_config.seed import seed_default_workflows
from ticketflow_config.settings import EngineSettings, load_settings
from ticketflow_config.validator import (
    WorkflowValidationResult,
    validate_workflow_document,
)

__all__ = [
    "EngineSettings",
    "WorkflowValidationResult",
    "compute_checksum",
    "document_from_body",
    "load_settings",
    "load_workflow_file",
    "load_yaml_file",
    "parse_definition_body",
    "parse_workflow_document",
    "seed_default_workflows",
    "validate_workflow_document",
]
