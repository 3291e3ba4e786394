"""
ticketflow_engines.sla -- Time-in-stage SLA tracking.

Responsibility:
    Compute how far a ticket is through its current stage's SLA window and
    classify it as on track, warning or breached; batch the same check
    over many tickets for the periodic sweep.

Architecture position:
    Engines -- pure.  ``now`` is always passed in; nothing here reads a
    clock.

Invariants enforced:
    - ``sla_status`` is monotonic non-decreasing in the elapsed fraction,
      so the status of a ticket that stays in one stage never moves back.
    - Read-only: a scan never changes a ticket's stage.

Naive datetimes are treated as UTC.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from ticketflow_kernel.domain.outcomes import SlaScanEntry, SlaStatus
from ticketflow_kernel.domain.ticket import TicketSnapshot
from ticketflow_kernel.domain.workflow import SlaPolicy, Stage, WorkflowDefinitionBody
from ticketflow_kernel.logging_config import get_logger

logger = get_logger("engines.sla")

DefinitionResolver = Callable[[TicketSnapshot], WorkflowDefinitionBody | None]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def elapsed_fraction(sla: SlaPolicy, entered_at: datetime, now: datetime) -> float:
    """``(now - entered_at) / duration``; 1.0 means the SLA is used up.

    Time before ``entered_at`` (clock skew) counts as zero.  A non-positive
    duration is treated as already exhausted.
    """
    elapsed_hours = max(
        (_as_utc(now) - _as_utc(entered_at)).total_seconds() / 3600.0, 0.0
    )
    if sla.duration_hours <= 0:
        return math.inf
    return elapsed_hours / sla.duration_hours


def sla_status(fraction: float, warning_threshold_percent: float) -> SlaStatus:
    """Classify an elapsed fraction against a warning threshold in percent."""
    if fraction >= 1.0:
        return SlaStatus.BREACHED
    if fraction < warning_threshold_percent / 100.0:
        return SlaStatus.ON_TRACK
    return SlaStatus.WARNING


def due_at(sla: SlaPolicy, entered_at: datetime) -> datetime:
    return _as_utc(entered_at) + timedelta(hours=sla.duration_hours)


def warning_at(sla: SlaPolicy, entered_at: datetime) -> datetime:
    return _as_utc(entered_at) + timedelta(
        hours=sla.duration_hours * sla.warning_threshold_percent / 100.0
    )


def check_stage(stage: Stage, ticket: TicketSnapshot, now: datetime) -> SlaScanEntry | None:
    """SLA entry for one ticket in ``stage``, or None when nothing is tracked."""
    if stage.sla is None or stage.is_final:
        return None
    fraction = elapsed_fraction(stage.sla, ticket.stage_entered_at, now)
    return SlaScanEntry(
        ticket_id=ticket.ticket_id,
        stage_id=stage.id,
        status=sla_status(fraction, stage.sla.warning_threshold_percent),
        elapsed_fraction=fraction,
        due_at=due_at(stage.sla, ticket.stage_entered_at),
    )


def scan(
    tickets: Iterable[TicketSnapshot],
    now: datetime,
    resolve_definition: DefinitionResolver,
    should_stop: Callable[[], bool] | None = None,
) -> list[SlaScanEntry]:
    """Classify every ticket that sits in a stage with an SLA.

    Tickets in final stages, in stages without an SLA, or whose workflow
    cannot be resolved are skipped.  ``should_stop`` is polled between
    tickets so a sweep can be cancelled on shutdown; a cancelled scan
    returns what it has so far.
    """
    entries: list[SlaScanEntry] = []
    for ticket in tickets:
        if should_stop is not None and should_stop():
            logger.info("sla_scan_cancelled", extra={"scanned": len(entries)})
            break
        definition = resolve_definition(ticket)
        if definition is None:
            logger.warning(
                "sla_scan_workflow_unresolved",
                extra={"ticket_id": ticket.ticket_id},
            )
            continue
        stage = definition.stage(ticket.current_stage_id)
        if stage is None:
            continue
        entry = check_stage(stage, ticket, now)
        if entry is not None:
            entries.append(entry)
    return entries
