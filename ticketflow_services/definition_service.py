"""
ticketflow_services.definition_service -- Workflow definition store.

Responsibility:
    CRUD for workflow definition documents backed by SQLAlchemy, and the
    read side the executor consumes (``WorkflowDefinitionStore``).

Architecture position:
    Services layer.  Parses and validates documents with
    ``ticketflow_config`` and persists them through
    ``ticketflow_kernel.models``.  Flushes only; the caller owns the
    transaction.

Invariants enforced:
    - Default uniqueness: at most one active ``is_default`` definition per
      workflow type.  Making a definition the default clears the flag on
      every other definition of the type in the same transaction, with
      the affected rows locked ``FOR UPDATE``.
    - A default definition cannot be deactivated; another definition
      must become the default first.  Making an inactive definition the
      default reactivates it.
    - Soft delete only.
    - Every published body is retained per (id, version) and never
      rewritten.  A body change that keeps the current version string is
      published under the next patch version; reusing a retained version
      for a different body is rejected.
    - Only documents without validation errors are stored, in canonical
      camelCase form with a checksum.

Failure modes:
    - InvalidWorkflowDefinitionError when a document has validation errors.
    - WorkflowDefinitionNotFoundError on update/deactivate of an unknown id.
    - DefaultWorkflowRequiredError when deactivating the current default.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ticketflow_config.loader import (
    compute_checksum,
    document_from_body,
    parse_definition_body,
)
from ticketflow_config.validator import validate_workflow_document
from ticketflow_kernel.db.base import as_utc
from ticketflow_kernel.domain.clock import Clock, SystemClock
from ticketflow_kernel.domain.workflow import WorkflowDefinition, WorkflowType
from ticketflow_kernel.exceptions import (
    DefaultWorkflowRequiredError,
    InvalidWorkflowDefinitionError,
    WorkflowDefinitionNotFoundError,
)
from ticketflow_kernel.logging_config import get_logger
from ticketflow_kernel.models.workflow_definition import WorkflowDefinitionModel
from ticketflow_kernel.models.workflow_definition_version import WorkflowDefinitionVersionModel
from ticketflow_kernel.services.base import BaseService, parse_uuid

logger = get_logger("services.definition_service")

# Keys a partial update may carry
_UPDATABLE = ("name", "description", "definition", "isDefault", "isActive", "version")


def _type_value(workflow_type: WorkflowType | str) -> str:
    return workflow_type.value if isinstance(workflow_type, WorkflowType) else str(workflow_type)


def next_patch_version(version: str) -> str:
    """``1.2.3`` -> ``1.2.4``; a non-numeric last part gets ``.1`` appended."""
    head, _, last = version.rpartition(".")
    if last.isdigit():
        bumped = str(int(last) + 1)
        return f"{head}.{bumped}" if head else bumped
    return f"{version}.1"


def _to_domain(model: WorkflowDefinitionModel) -> WorkflowDefinition:
    return WorkflowDefinition(
        id=str(model.id),
        workflow_type=WorkflowType(model.workflow_type),
        name=model.name,
        definition=parse_definition_body(model.definition),
        description=model.description,
        is_default=model.is_default,
        is_active=model.is_active,
        version=model.version,
        created_by=model.created_by,
        created_date=as_utc(model.created_at),
        modified_by=model.modified_by or model.created_by,
        modified_date=as_utc(model.updated_at),
    )


class WorkflowDefinitionService(BaseService):
    """SQLAlchemy-backed workflow definition store."""

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Read side (WorkflowDefinitionStore)
    # ------------------------------------------------------------------

    def get_definition(self, workflow_type: str, workflow_id: str) -> WorkflowDefinition | None:
        """The definition with this id and type, active or not."""
        model = self._get_model(workflow_id)
        if model is None or model.workflow_type != _type_value(workflow_type):
            return None
        return _to_domain(model)

    def get_definition_version(
        self, workflow_type: str, workflow_id: str, version: str,
    ) -> WorkflowDefinition | None:
        """The definition with the body it had when ``version`` was published."""
        model = self._get_model(workflow_id)
        if model is None or model.workflow_type != _type_value(workflow_type):
            return None
        retained = self._get_version(model.id, version)
        if retained is None:
            return None
        return replace(
            _to_domain(model),
            definition=parse_definition_body(retained.definition),
            version=retained.version,
        )

    def get_by_id(self, workflow_id: str) -> WorkflowDefinition:
        model = self._get_model(workflow_id)
        if model is None:
            raise WorkflowDefinitionNotFoundError(workflow_id)
        return _to_domain(model)

    def get_default(self, workflow_type: str) -> WorkflowDefinition | None:
        model = self.session.execute(
            select(WorkflowDefinitionModel).where(
                WorkflowDefinitionModel.workflow_type == _type_value(workflow_type),
                WorkflowDefinitionModel.is_default.is_(True),
                WorkflowDefinitionModel.is_active.is_(True),
            )
        ).scalars().first()
        return _to_domain(model) if model is not None else None

    def list_active(
        self,
        workflow_type: str | None = None,
        default_only: bool = False,
    ) -> list[WorkflowDefinition]:
        """Active definitions sorted by type, then default first, then name."""
        query = select(WorkflowDefinitionModel).where(WorkflowDefinitionModel.is_active.is_(True))
        if workflow_type is not None:
            query = query.where(WorkflowDefinitionModel.workflow_type == _type_value(workflow_type))
        if default_only:
            query = query.where(WorkflowDefinitionModel.is_default.is_(True))
        query = query.order_by(
            WorkflowDefinitionModel.workflow_type,
            WorkflowDefinitionModel.is_default.desc(),
            WorkflowDefinitionModel.name,
        )
        return [_to_domain(m) for m in self.session.execute(query).scalars().all()]

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def create(self, document: Mapping[str, Any], actor: str = "system") -> WorkflowDefinition:
        """Validate and store a new workflow envelope.

        Required keys: ``workflowType``, ``name``, ``definition``.
        """
        name = str(document.get("name") or "<unnamed>")
        result = validate_workflow_document(document)
        if not result.is_valid:
            raise InvalidWorkflowDefinitionError(name, result.errors)

        workflow_type = _type_value(document["workflowType"])
        is_default = bool(document.get("isDefault", False))
        is_active = bool(document.get("isActive", True)) or is_default
        body = document_from_body(parse_definition_body(document["definition"]))

        if is_default:
            self._clear_other_defaults(workflow_type, keep_id=None, actor=actor)

        model = WorkflowDefinitionModel(
            workflow_type=workflow_type,
            name=document["name"],
            description=document.get("description") or "",
            definition=body,
            is_default=is_default,
            is_active=is_active,
            version=str(document.get("version") or "1.0.0"),
            checksum=compute_checksum(body),
            created_by=actor,
            modified_by=actor,
        )
        self.session.add(model)
        self.session.flush()
        self._publish(model, actor)

        logger.info(
            "workflow_definition_created",
            extra={
                "workflow_id": str(model.id),
                "workflow_type": workflow_type,
                "workflow_name": model.name,
                "is_default": is_default,
                "warnings": result.warnings,
            },
        )
        return _to_domain(model)

    def update(
        self,
        workflow_id: str,
        changes: Mapping[str, Any],
        actor: str = "system",
    ) -> WorkflowDefinition:
        """Apply a partial update.  Keys not present are left unchanged."""
        model = self._require_model(workflow_id, for_update=True)
        unknown = sorted(set(changes) - set(_UPDATABLE))
        if unknown:
            raise InvalidWorkflowDefinitionError(model.name, [f"Cannot update {unknown}"])

        is_default = bool(changes.get("isDefault", model.is_default))
        is_active = bool(changes.get("isActive", model.is_active))
        if is_default and not model.is_default and "isActive" not in changes:
            is_active = True
        if is_default and not is_active:
            raise DefaultWorkflowRequiredError(workflow_id, model.workflow_type)

        previous_version = model.version
        version = str(changes["version"]) if "version" in changes else previous_version

        if "definition" in changes:
            result = validate_workflow_document(changes["definition"])
            if not result.is_valid:
                raise InvalidWorkflowDefinitionError(
                    changes.get("name", model.name), result.errors,
                )
            body = document_from_body(parse_definition_body(changes["definition"]))
            checksum = compute_checksum(body)
            if checksum != model.checksum and version == previous_version:
                version = self._free_version_after(model.id, previous_version, checksum)
        else:
            body, checksum = model.definition, model.checksum

        if version != previous_version:
            retained = self._get_version(model.id, version)
            if retained is not None and retained.checksum != checksum:
                raise InvalidWorkflowDefinitionError(
                    changes.get("name", model.name),
                    [f"Version {version} was already published with a different definition"],
                )
        model.definition = body
        model.checksum = checksum

        if "name" in changes:
            model.name = changes["name"]
        if "description" in changes:
            model.description = changes["description"] or ""
        model.version = version
        if version != previous_version:
            self._publish(model, actor)

        if is_default and not model.is_default:
            self._clear_other_defaults(model.workflow_type, keep_id=model.id, actor=actor)

        model.is_default = is_default
        model.is_active = is_active
        model.modified_by = actor
        self.session.flush()

        logger.info(
            "workflow_definition_updated",
            extra={
                "workflow_id": workflow_id,
                "workflow_type": model.workflow_type,
                "changed": sorted(changes),
                "is_default": is_default,
                "is_active": is_active,
            },
        )
        return _to_domain(model)

    def deactivate(self, workflow_id: str, actor: str = "system") -> WorkflowDefinition:
        """Soft-delete a definition.  The type's default cannot be deactivated."""
        model = self._require_model(workflow_id, for_update=True)
        if model.is_default:
            raise DefaultWorkflowRequiredError(workflow_id, model.workflow_type)

        model.is_active = False
        model.modified_by = actor
        self.session.flush()

        logger.info(
            "workflow_definition_deactivated",
            extra={"workflow_id": workflow_id, "workflow_type": model.workflow_type},
        )
        return _to_domain(model)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _clear_other_defaults(self, workflow_type: str, keep_id: UUID | None, actor: str) -> None:
        """Unset ``is_default`` on every other definition of the type.

        Flushed before the caller sets its own flag so the partial unique
        index never sees two defaults.
        """
        query = select(WorkflowDefinitionModel).where(
            WorkflowDefinitionModel.workflow_type == workflow_type,
            WorkflowDefinitionModel.is_default.is_(True),
        )
        if keep_id is not None:
            query = query.where(WorkflowDefinitionModel.id != keep_id)
        previous = self.session.execute(query.with_for_update()).scalars().all()
        for other in previous:
            other.is_default = False
            other.modified_by = actor
            logger.info(
                "workflow_default_cleared",
                extra={"workflow_id": str(other.id), "workflow_type": workflow_type},
            )
        self.session.flush()

    def _publish(self, model: WorkflowDefinitionModel, actor: str) -> None:
        """Retain the model's current body under its current version."""
        if self._get_version(model.id, model.version) is not None:
            return
        self.session.add(
            WorkflowDefinitionVersionModel(
                workflow_definition_id=model.id,
                version=model.version,
                definition=model.definition,
                checksum=model.checksum,
                published_by=actor,
                published_at=self._clock.now(),
            )
        )
        self.session.flush()
        logger.info(
            "workflow_version_published",
            extra={"workflow_id": str(model.id), "version": model.version},
        )

    def _free_version_after(self, workflow_id: UUID, version: str, checksum: str) -> str:
        """Next patch version that is unpublished or already holds ``checksum``."""
        candidate = next_patch_version(version)
        retained = self._get_version(workflow_id, candidate)
        while retained is not None and retained.checksum != checksum:
            candidate = next_patch_version(candidate)
            retained = self._get_version(workflow_id, candidate)
        return candidate

    def _get_version(self, workflow_id: UUID, version: str) -> WorkflowDefinitionVersionModel | None:
        return self.session.execute(
            select(WorkflowDefinitionVersionModel).where(
                WorkflowDefinitionVersionModel.workflow_definition_id == workflow_id,
                WorkflowDefinitionVersionModel.version == version,
            )
        ).scalars().first()

    def _get_model(self, workflow_id: str) -> WorkflowDefinitionModel | None:
        key = parse_uuid(workflow_id)
        if key is None:
            return None
        return self.session.get(WorkflowDefinitionModel, key)

    def _require_model(self, workflow_id: str, for_update: bool = False) -> WorkflowDefinitionModel:
        key = parse_uuid(workflow_id)
        model = None
        if key is not None:
            model = self.session.get(WorkflowDefinitionModel, key, with_for_update=for_update)
        if model is None:
            raise WorkflowDefinitionNotFoundError(workflow_id)
        return model
