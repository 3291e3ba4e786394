"""
ticketflow_kernel.services.ticket_store -- SQLAlchemy ticket store.

Responsibility:
    Load and save ticket snapshots with an optimistic concurrency check.
    Implements the ``TicketStore`` protocol.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Every save is ``UPDATE tickets ... WHERE id = :id AND version = :expected``
      and bumps the version by one.  A stale snapshot updates zero rows
      and raises ``OptimisticLockError``; nothing is written.

Failure modes:
    - TicketNotFoundError on load of an unknown id.
    - OptimisticLockError on a stale save.
"""

from __future__ import annotations

from sqlalchemy import select, update

from ticketflow_kernel.domain.ticket import TicketSnapshot
from ticketflow_kernel.exceptions import OptimisticLockError, TicketNotFoundError
from ticketflow_kernel.logging_config import get_logger
from ticketflow_kernel.models.ticket import TicketModel
from ticketflow_kernel.services.base import BaseService, parse_uuid

logger = get_logger("kernel.ticket_store")


def _type_value(snapshot: TicketSnapshot) -> str:
    return getattr(snapshot.ticket_type, "value", snapshot.ticket_type)


class SqlTicketStore(BaseService):
    """Ticket persistence with version-checked writes."""

    def create(self, snapshot: TicketSnapshot, *, in_final_stage: bool = False) -> TicketSnapshot:
        """Insert a new ticket row.  The snapshot's id must be a UUID string."""
        key = parse_uuid(snapshot.ticket_id)
        if key is None:
            raise ValueError(f"Ticket id must be a UUID, got {snapshot.ticket_id!r}")
        model = TicketModel(
            id=key,
            ticket_type=_type_value(snapshot),
            current_stage_id=snapshot.current_stage_id,
            stage_entered_at=snapshot.stage_entered_at,
            fields=dict(snapshot.fields),
            workflow_definition_id=snapshot.workflow_definition_id,
            workflow_version=snapshot.workflow_version,
            is_final_stage=in_final_stage,
            version=0,
        )
        self.session.add(model)
        self.session.flush()
        logger.info(
            "ticket_created",
            extra={"ticket_id": snapshot.ticket_id, "stage": snapshot.current_stage_id},
        )
        return model.to_snapshot()

    def load(self, ticket_id: str) -> TicketSnapshot:
        key = parse_uuid(ticket_id)
        model = self.session.get(TicketModel, key, populate_existing=True) if key else None
        if model is None:
            raise TicketNotFoundError(ticket_id)
        return model.to_snapshot()

    def save(
        self,
        snapshot: TicketSnapshot,
        expected_version: int,
        *,
        in_final_stage: bool = False,
    ) -> TicketSnapshot:
        """Write ``snapshot`` if the stored version is still ``expected_version``."""
        key = parse_uuid(snapshot.ticket_id)
        if key is None:
            raise TicketNotFoundError(snapshot.ticket_id)
        new_version = expected_version + 1
        result = self.session.execute(
            update(TicketModel)
            .where(TicketModel.id == key, TicketModel.version == expected_version)
            .values(
                current_stage_id=snapshot.current_stage_id,
                stage_entered_at=snapshot.stage_entered_at,
                fields=dict(snapshot.fields),
                workflow_definition_id=snapshot.workflow_definition_id,
                workflow_version=snapshot.workflow_version,
                is_final_stage=in_final_stage,
                version=new_version,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "ticket_save_conflict",
                extra={"ticket_id": snapshot.ticket_id, "expected_version": expected_version},
            )
            raise OptimisticLockError("Ticket", snapshot.ticket_id, expected_version)

        logger.debug(
            "ticket_saved",
            extra={"ticket_id": snapshot.ticket_id, "version": new_version},
        )
        return self.load(snapshot.ticket_id)

    def list_open(self) -> list[TicketSnapshot]:
        """Tickets not in a final stage, oldest stage entry first."""
        models = self.session.execute(
            select(TicketModel)
            .where(TicketModel.is_final_stage.is_(False))
            .order_by(TicketModel.stage_entered_at)
        ).scalars().all()
        return [m.to_snapshot() for m in models]
