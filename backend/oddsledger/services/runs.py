from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from oddsledger.config import Settings
from oddsledger.domain.enums import RunType
from oddsledger.models import PipelineRun
from oddsledger.services.collector import collect_snapshots
from oddsledger.services.grading import grade_pending_picks

logger = logging.getLogger(__name__)


def _log_run(session: Session, *, run_type: str, status: str, stats: dict, error: str | None = None) -> None:
    session.add(
        PipelineRun(
            run_type=run_type,
            status=status,
            stats_json=json.dumps(stats, sort_keys=True, default=str),
            error=error,
        )
    )
    session.commit()


def run_and_log(
    session: Session,
    settings: Settings,
    run_type: str,
    sports: Sequence[str] | None = None,
) -> dict:
    """Run one job and record it in ``pipeline_runs``.

    Never raises: a crashed job comes back as ``{"error": ...}`` so the HTTP
    and CLI callers always get a summary.
    """
    try:
        kind = RunType(run_type)
        if kind == RunType.COLLECT:
            result = collect_snapshots(session, settings, sports=sports)
        else:
            result = grade_pending_picks(session, settings)
    except Exception as exc:  # noqa: BLE001
        logger.exception("%s run failed", run_type)
        session.rollback()
        message = str(exc)
        result = {"error": message}
        try:
            _log_run(session, run_type=run_type, status="error", stats=result, error=message)
        except Exception:  # noqa: BLE001
            session.rollback()
            logger.exception("could not record failed %s run", run_type)
        return result

    try:
        _log_run(session, run_type=run_type, status="ok", stats=result)
    except Exception:  # noqa: BLE001
        session.rollback()
        logger.exception("could not record %s run", run_type)
    return result


def list_pipeline_runs(session: Session, limit: int = 50, run_type: str | None = None) -> list[dict[str, object]]:
    stmt = select(PipelineRun)
    if run_type is not None:
        stmt = stmt.where(PipelineRun.run_type == run_type)
    rows = (
        session.execute(stmt.order_by(desc(PipelineRun.created_at), desc(PipelineRun.id)).limit(limit))
        .scalars()
        .all()
    )
    return [
        {
            "id": row.id,
            "created_at": row.created_at,
            "run_type": row.run_type,
            "status": row.status,
            "stats_json": row.stats_json,
            "error": row.error,
        }
        for row in rows
    ]


def latest_run_statuses(session: Session) -> dict[str, dict[str, object] | None]:
    output: dict[str, dict[str, object] | None] = {}
    for run_type in RunType:
        rows = list_pipeline_runs(session, limit=1, run_type=run_type.value)
        output[run_type.value] = (
            {"status": rows[0]["status"], "created_at": rows[0]["created_at"], "error": rows[0]["error"]}
            if rows
            else None
        )
    return output
