from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from oddsledger.config import get_settings
from oddsledger.db import get_db
from oddsledger.services.runs import latest_run_statuses, list_pipeline_runs, run_and_log

router = APIRouter(tags=["jobs"])


@router.post("/jobs/collect-snapshots")
def collect_snapshots_job(
    sport: list[str] | None = Query(None),
    db: Session = Depends(get_db),
) -> dict[str, object]:
    return run_and_log(db, get_settings(), run_type="collect", sports=sport)


@router.post("/jobs/grade-picks")
def grade_picks_job(db: Session = Depends(get_db)) -> dict[str, object]:
    return run_and_log(db, get_settings(), run_type="grade")


@router.get("/jobs/runs")
def job_runs(
    limit: int = Query(50, ge=1, le=500),
    run_type: str | None = Query(None, pattern="^(collect|grade)$"),
    db: Session = Depends(get_db),
) -> list[dict[str, object]]:
    return list_pipeline_runs(db, limit=limit, run_type=run_type)


@router.get("/jobs/health")
def jobs_health(db: Session = Depends(get_db)) -> dict[str, object]:
    return {"last_run_statuses": latest_run_statuses(db)}
