"""Commissioner endpoints: FAAB export, member sync, and scheduler control."""

import logging
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response

from api.deps import get_state, require_admin, resolve_league
from tavern.config.constants import FAAB_REPORT_LOOKBACK_DAYS
from tavern.data.sources.base import DataSourceError
from tavern.database.models import utc_now
from tavern.tracking.reports import faab_adjustments, faab_adjustments_csv

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/admin/export-faab")
async def export_faab(request: Request) -> Response:
    """
    CSV of FAAB adjustments from bets settled in the last week.

    Columns: Roster ID, Team Name, Owner Name, FAAB Adjustment, Notes.
    """
    require_admin(request)
    app_state = get_state(request)
    league_id = resolve_league(request)

    since = utc_now() - timedelta(days=FAAB_REPORT_LOOKBACK_DAYS)
    bets = app_state.ledger.get_settled_since(league_id, since)
    adjustments = faab_adjustments(bets)
    logger.info(f"FAAB export for league {league_id}: {len(adjustments)} rosters")

    filename = f"faab-adjustments-{utc_now().date().isoformat()}.csv"
    return Response(
        content=faab_adjustments_csv(adjustments),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/admin/sync-members")
async def sync_members(request: Request) -> dict[str, Any]:
    """Refresh league members from Sleeper; new rosters get the default balance."""
    require_admin(request)
    app_state = get_state(request)
    league_id = resolve_league(request)

    try:
        users = await app_state.sleeper.get_users(league_id)
        rosters = await app_state.sleeper.get_rosters(league_id)
    except DataSourceError as e:
        logger.error(f"Member sync failed for league {league_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch league data from Sleeper")

    members = app_state.accounts.sync_members(league_id, users, rosters)
    return {"league_id": league_id, "members": [m.to_dict() for m in members]}


@router.get("/admin/jobs")
async def get_jobs_status(request: Request) -> dict[str, Any]:
    """Last run, next run, and status for each scheduled job."""
    require_admin(request)
    app_state = get_state(request)

    if not app_state.scheduler:
        return {"scheduler_running": False, "jobs": []}

    jobs = []
    for job_id, status in app_state.scheduler.get_job_status().items():
        jobs.append(
            {
                "job_id": job_id,
                "name": status.get("name", job_id),
                "last_status": status.get("last_status", "pending"),
                "last_run": status["last_run"].isoformat() if status.get("last_run") else None,
                "next_run": status["next_run"].isoformat() if status.get("next_run") else None,
                "error": status.get("last_error"),
            }
        )

    return {"scheduler_running": app_state.scheduler.is_running, "jobs": jobs}


@router.post("/admin/jobs/{job_id}/trigger")
async def trigger_job(request: Request, job_id: str) -> dict[str, Any]:
    """Run a scheduled job now (weekly_settlement, warm_cache, health_check)."""
    require_admin(request)
    app_state = get_state(request)

    if not app_state.scheduler:
        raise HTTPException(status_code=503, detail="Scheduler not running")
    if not app_state.scheduler.trigger_job(job_id):
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")

    return {"job_id": job_id, "triggered": True}
