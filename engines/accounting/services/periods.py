"""
Ledgerline Accounting Engine — Fiscal Period Service
=====================================================
Applies status transitions to fiscal periods and emits the matching
audit facts. Periods are values; callers persist what comes back.

Scheduled transitions run only when run_scheduled_transitions is called;
a status never moves on its own.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from core.audit import AuditSink
from core.primitives.exceptions import StateTransitionError
from core.primitives.fiscal_period import FiscalPeriod, FiscalPeriodStatusType
from core.time.clock import Clock, get_default_clock
from engines.accounting.events import period_status_changed_fact

logger = logging.getLogger("ledgerline.periods")

S = FiscalPeriodStatusType

AUTO_TRANSITION_TARGETS: Dict[FiscalPeriodStatusType, FiscalPeriodStatusType] = {
    S.FUTURE_PERIOD: S.SCHEDULED_OPEN,
    S.SCHEDULED_OPEN: S.OPEN,
    S.SCHEDULED_CLOSE: S.SOFT_CLOSE,
}

SCHEDULER_ACTOR = "system:period-scheduler"


class FiscalPeriodService:

    def __init__(
        self,
        *,
        audit_sink: Optional[AuditSink] = None,
        clock: Optional[Clock] = None,
    ):
        self._audit_sink = audit_sink
        self._clock = clock or get_default_clock()

    def transition(
        self,
        period: FiscalPeriod,
        target: FiscalPeriodStatusType,
        reason: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> FiscalPeriod:
        """Raises InvalidStatusTransitionError; the given period is untouched."""
        try:
            updated = period.transition_to(
                target, reason=reason, changed_by=changed_by, at=self._clock.now_utc()
            )
        except StateTransitionError as exc:
            logger.warning(f"Period {period.name}: {exc}")
            raise

        if self._audit_sink is not None:
            self._audit_sink.record(
                period_status_changed_fact(
                    updated, period.status, self._clock.now_utc(), actor_id=changed_by
                )
            )
        logger.info(
            f"Period {period.name}: {period.status.status_type.value} → "
            f"{target.value} by {changed_by or 'unknown'}"
        )
        return updated

    def run_scheduled_transitions(
        self,
        periods: Iterable[FiscalPeriod],
        today: Optional[date] = None,
    ) -> List[FiscalPeriod]:
        """
        Apply every due auto-transition (best effort).

        Returns the periods in input order; those without a due
        transition, and those whose transition fails, come back as given.
        """
        today = today or self._clock.today()
        result: List[FiscalPeriod] = []
        for period in periods:
            status = period.status
            target = AUTO_TRANSITION_TARGETS.get(status.status_type)
            if target is None or not status.due_auto_transition(today):
                result.append(period)
                continue
            try:
                result.append(self.transition(
                    period,
                    target,
                    reason=f"Scheduled transition due {status.auto_transition_date.isoformat()}",
                    changed_by=SCHEDULER_ACTOR,
                ))
            except StateTransitionError:
                result.append(period)
        return result

    def periods_requiring_attention(
        self,
        periods: Iterable[FiscalPeriod],
        today: Optional[date] = None,
    ) -> List[FiscalPeriod]:
        """Periods that are urgent, escalated, or past a deadline."""
        today = today or self._clock.today()
        return [
            p for p in periods
            if p.status.requires_immediate_attention or p.status.has_missed_deadlines(today)
        ]
