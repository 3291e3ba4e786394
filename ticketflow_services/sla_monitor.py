"""
SlaMonitor -- Periodic SLA sweep over open tickets.

Contract:
    ``tick()`` opens a session, classifies every open ticket against its
    current stage's SLA and hands WARNING/BREACHED notification intents to
    the configured sink.  ``start()`` / ``stop()`` run ticks on a
    background thread every ``sweep_interval_seconds``.

Architecture: ticketflow_services.  Uses ticketflow_engines.sla for the
    pure classification; reads tickets and definitions through the
    SQLAlchemy-backed stores.

Invariants enforced:
    - Read-only: a sweep never changes a ticket's stage.
    - One intent per ticket per status level for a given stage entry;
      re-entering the stage starts over.
    - A level is recorded only after the sink accepted all its intents.
      When the sink raises, the sweep stops there and the next sweep
      emits the undelivered levels again; the sink deduplicates.
    - Stop signal is honoured between tickets; the current ticket is
      finished first.

Non-goals:
    - NOT distributed.  Two monitors over one database both notify.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from sqlalchemy.orm import Session

from ticketflow_config.settings import EngineSettings
from ticketflow_engines import sla
from ticketflow_engines.actions import notification_intents
from ticketflow_kernel.domain.clock import Clock, SystemClock
from ticketflow_kernel.domain.collaborators import WorkflowDefinitionStore
from ticketflow_kernel.domain.effects import NotificationIntent
from ticketflow_kernel.domain.outcomes import SlaScanEntry, SlaStatus
from ticketflow_kernel.domain.ticket import TicketSnapshot
from ticketflow_kernel.domain.workflow import NotificationTrigger, WorkflowDefinitionBody
from ticketflow_kernel.logging_config import get_logger
from ticketflow_kernel.services.ticket_store import SqlTicketStore
from ticketflow_services.definition_service import WorkflowDefinitionService
from ticketflow_services.workflow_executor import resolve_ticket_definition

logger = get_logger("services.sla_monitor")

DEFAULT_SLA_RECIPIENT = "assignee"

_TRIGGER_FOR_STATUS = {
    SlaStatus.WARNING: NotificationTrigger.SLA_WARNING,
    SlaStatus.BREACHED: NotificationTrigger.SLA_BREACH,
}

# Key of one stage visit: (ticket_id, stage_id, entered_at)
_VisitKey = tuple[str, str, str]


@dataclass(frozen=True)
class SlaScanReport:
    """What one sweep saw and asked to send."""

    started_at: datetime
    scanned: int
    entries: tuple[SlaScanEntry, ...] = ()
    notifications: tuple[NotificationIntent, ...] = ()
    cancelled: bool = False

    @property
    def warnings(self) -> tuple[SlaScanEntry, ...]:
        return tuple(e for e in self.entries if e.status == SlaStatus.WARNING)

    @property
    def breaches(self) -> tuple[SlaScanEntry, ...]:
        return tuple(e for e in self.entries if e.status == SlaStatus.BREACHED)


class SlaMonitor:
    """In-process SLA sweep scheduler."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        sweep_interval_seconds: float = 3600.0,
        notification_sink: Callable[[NotificationIntent], None] | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._interval = sweep_interval_seconds
        self._sink = notification_sink
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._notified: dict[_VisitKey, SlaStatus] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        notification_sink: Callable[[NotificationIntent], None] | None = None,
    ) -> SlaMonitor:
        return cls(
            session_factory,
            clock=clock,
            sweep_interval_seconds=settings.sla_sweep_interval_seconds,
            notification_sink=notification_sink,
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> SlaScanReport | None:
        """Run one sweep against the database (public for testing).

        Returns None when the sweep failed; the failure is logged.
        """
        session = self._session_factory()
        try:
            tickets = SqlTicketStore(session).list_open()
            report = self.sweep(tickets, WorkflowDefinitionService(session, self._clock))
            session.rollback()
            return report
        except Exception:
            session.rollback()
            logger.exception("sla_sweep_failed")
            return None
        finally:
            session.close()

    def sweep(
        self,
        tickets: Iterable[TicketSnapshot],
        definitions: WorkflowDefinitionStore,
    ) -> SlaScanReport:
        """Classify ``tickets`` and emit intents for newly reached levels."""
        now = self._clock.now()
        tickets = list(tickets)
        bodies: dict[str, WorkflowDefinitionBody] = {}

        def resolve(ticket: TicketSnapshot) -> WorkflowDefinitionBody | None:
            workflow = resolve_ticket_definition(definitions, ticket)
            if workflow is None:
                return None
            bodies[ticket.ticket_id] = workflow.definition
            return workflow.definition

        entries = sla.scan(tickets, now, resolve, should_stop=self._stop_event.is_set)
        cancelled = self._stop_event.is_set()
        by_id = {t.ticket_id: t for t in tickets}

        pending: list[tuple[_VisitKey, SlaStatus, list[NotificationIntent]]] = []
        with self._lock:
            for entry in entries:
                ticket = by_id[entry.ticket_id]
                if self._needs_notice(entry, ticket):
                    intents = self._intents_for(entry, ticket, bodies[entry.ticket_id])
                    pending.append((_visit_key(ticket), entry.status, intents))
            if not cancelled:
                self._forget_except({_visit_key(t) for t in tickets})

        # A level counts as notified only once every intent for it was delivered
        delivered: list[NotificationIntent] = []
        for key, status, intents in pending:
            for intent in intents:
                if self._sink is not None:
                    self._sink(intent)
            delivered.extend(intents)
            with self._lock:
                self._notified[key] = status

        report = SlaScanReport(
            started_at=now,
            scanned=len(tickets),
            entries=tuple(entries),
            notifications=tuple(delivered),
            cancelled=cancelled,
        )
        logger.info(
            "sla_scan_completed",
            extra={
                "scanned": report.scanned,
                "tracked": len(report.entries),
                "warnings": len(report.warnings),
                "breaches": len(report.breaches),
                "notifications": len(report.notifications),
                "cancelled": cancelled,
            },
        )
        return report

    def start(self) -> None:
        """Start sweeping in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="sla-monitor",
            daemon=True,
        )
        self._thread.start()
        logger.info("sla_monitor_started", extra={"sweep_interval": self._interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current sweep to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("sla_monitor_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("sla_monitor_tick_exception")
            self._stop_event.wait(timeout=self._interval)

    def _needs_notice(self, entry: SlaScanEntry, ticket: TicketSnapshot) -> bool:
        """True when the entry reached a level not yet delivered for this stage visit."""
        if entry.status not in _TRIGGER_FOR_STATUS:
            return False
        previous = self._notified.get(_visit_key(ticket))
        return previous is None or previous < entry.status

    def _intents_for(
        self,
        entry: SlaScanEntry,
        ticket: TicketSnapshot,
        body: WorkflowDefinitionBody,
    ) -> list[NotificationIntent]:
        trigger = _TRIGGER_FOR_STATUS[entry.status]
        stage = body.stage(entry.stage_id)
        origin = f"sla:{entry.stage_id}"
        declared = stage.notifications_for(trigger) if stage is not None else ()
        if declared:
            return notification_intents(declared, ticket, origin)
        return [
            NotificationIntent(
                recipient_resolution=DEFAULT_SLA_RECIPIENT,
                template=trigger.value,
                ticket_ref=ticket.ticket_id,
                origin=origin,
            )
        ]

    def _forget_except(self, live: set[_VisitKey]) -> None:
        for key in [k for k in self._notified if k not in live]:
            del self._notified[key]


def _visit_key(ticket: TicketSnapshot) -> _VisitKey:
    return (ticket.ticket_id, ticket.current_stage_id, ticket.stage_entered_at.isoformat())
