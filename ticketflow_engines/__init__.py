"""
Module: ticketflow_engines
Responsibility:
    Pure decision engines for the workflow core: condition evaluation,
    action dispatch, automation rules, transition validation and SLA
    tracking.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ticketflow_kernel.domain and the kernel logger.
    MUST NOT import ticketflow_services or ticketflow_config.

Invariants enforced:
    - Purity: engines never read the clock; ``now`` is a parameter.
    - Totality: expected failures come back as values, not exceptions.

Usage:
    from ticketflow_engines.conditions import evaluate
    from ticketflow_engines.transitions import validate
    from ticketflow_engines import rules, sla
"""

from ticketflow_engines.actions import DispatchContext, dispatch, dispatch_all
from ticketflow_engines.conditions import MISSING, evaluate, resolve_path
from ticketflow_engines.rules import RulePassResult, run as run_rules
from ticketflow_engines.sla import elapsed_fraction, scan as scan_sla, sla_status
from ticketflow_engines.transitions import validate as validate_transition

__all__ = [
    "DispatchContext",
    "dispatch",
    "dispatch_all",
    "MISSING",
    "evaluate",
    "resolve_path",
    "RulePassResult",
    "run_rules",
    "elapsed_fraction",
    "scan_sla",
    "sla_status",
    "validate_transition",
]
