"""
priority_refresh.py
───────────────────
Batch job that recomputes the whole risk chain and audit priority for every
auditable area. Run it after a weight change (stored scores are otherwise
refreshed only when an area is next edited) or on a schedule.

Each area is processed under its own lock and transaction, so interactive
edits to other areas are never blocked, and one bad area never rolls back
the others. Priorities marked `overridden` are preserved.

Usage:
  python -m app.services.priority_refresh
  OR via the admin endpoint: POST /v1/admin/recompute-all

Environment variables required:
  DATABASE_URL  - Risk engine DB
"""
from __future__ import annotations

import logging
import threading
from collections import Counter as Tally
from datetime import datetime, timezone
from typing import Optional

import structlog
from prometheus_client import Counter

from app.schemas.risk_response import OutcomeStatus, RecomputeAllResponse
from app.services.recalculation import RecalculationOrchestrator

logger = structlog.get_logger(__name__)

BATCH_OUTCOMES = Counter(
    "priority_refresh_outcomes_total",
    "Per-area outcomes of recompute-all runs",
    ["status"],
)


def run_refresh(
    orchestrator: Optional[RecalculationOrchestrator] = None,
    stop_event: Optional[threading.Event] = None,
) -> RecomputeAllResponse:
    """
    Full refresh cycle:
      1. Recompute each area independently, with the active weight config
      2. Tally outcomes into Prometheus counters
      3. Return the per-area outcome list plus totals

    Args:
        orchestrator: Override the default orchestrator (for testing)
        stop_event:   When set, areas not yet started are reported SKIPPED
    """
    orch = orchestrator or RecalculationOrchestrator()
    started_at = datetime.now(timezone.utc)
    logger.info("priority_refresh_started")

    outcomes = orch.recompute_all(stop_event=stop_event)

    tally = Tally(o.status for o in outcomes)
    for status, count in tally.items():
        BATCH_OUTCOMES.labels(status.value).inc(count)

    elapsed = (datetime.now(timezone.utc) - started_at).total_seconds()
    result = RecomputeAllResponse(
        total=len(outcomes),
        updated=tally[OutcomeStatus.UPDATED],
        preserved=tally[OutcomeStatus.PRESERVED_OVERRIDE],
        failed=tally[OutcomeStatus.FAILED],
        skipped=tally[OutcomeStatus.SKIPPED],
        elapsed_seconds=round(elapsed, 2),
        outcomes=outcomes,
    )
    logger.info(
        "priority_refresh_complete",
        total=result.total,
        updated=result.updated,
        preserved=result.preserved,
        failed=result.failed,
        skipped=result.skipped,
        elapsed_seconds=result.elapsed_seconds,
    )
    return result


def failed_area_ids(result: RecomputeAllResponse) -> list[str]:
    """Areas worth retrying."""
    return [o.auditable_area_id for o in result.outcomes if o.status == OutcomeStatus.FAILED]


if __name__ == "__main__":
    import sys

    from app.models.database import get_session_factory
    from app.scoring.weights import reload_weight_config

    logging.basicConfig(level=logging.INFO)

    try:
        session = get_session_factory()()
        try:
            reload_weight_config(session)
        finally:
            session.close()
        result = run_refresh()
        print(f"✓ Priorities refreshed: {result.updated} updated, {result.preserved} overrides kept, "
              f"{result.failed} failed ({result.elapsed_seconds}s)")
        for area_id in failed_area_ids(result):
            print(f"  ✗ {area_id}", file=sys.stderr)
        sys.exit(1 if result.failed else 0)
    except Exception as e:
        print(f"✗ Refresh failed: {e}", file=sys.stderr)
        sys.exit(1)
