"""League registration and subdomain availability."""

import logging
import re
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from api.deps import RESERVED_SUBDOMAINS, get_state
from tavern.data.sources.base import DataNotAvailableError, DataSourceError
from tavern.database.repository import LeagueRepository

logger = logging.getLogger(__name__)

router = APIRouter()

SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{1,61}[a-z0-9])$")


class CreateLeagueRequest(BaseModel):
    """Register a Sleeper league under its own subdomain."""

    subdomain: str
    sleeper_league_id: str = Field(min_length=1, max_length=32)
    name: Optional[str] = None
    commissioner_email: Optional[str] = None


def subdomain_problem(subdomain: str) -> Optional[str]:
    """Why a subdomain cannot be used, or None if the format is acceptable."""
    if not SUBDOMAIN_PATTERN.match(subdomain):
        return "Use 3-63 lowercase letters, digits, or hyphens, not starting or ending with a hyphen"
    if subdomain in RESERVED_SUBDOMAINS:
        return "Subdomain is reserved"
    return None


@router.get("/leagues/check-subdomain/{subdomain}")
async def check_subdomain(request: Request, subdomain: str) -> dict[str, Any]:
    """Whether a subdomain is well-formed and not yet taken."""
    app_state = get_state(request)
    subdomain = subdomain.strip().lower()

    problem = subdomain_problem(subdomain)
    if problem:
        return {"subdomain": subdomain, "available": False, "reason": problem}

    with app_state.database.session_scope() as session:
        taken = LeagueRepository(session).get_by_subdomain(subdomain) is not None

    response = {"subdomain": subdomain, "available": not taken}
    if taken:
        response["reason"] = "Subdomain is already taken"
    return response


@router.post("/leagues", status_code=201)
async def create_league(request: Request, body: CreateLeagueRequest) -> dict[str, Any]:
    """
    Register a league.

    The Sleeper league must exist. Members are imported from its rosters;
    an import failure does not undo the registration.
    """
    app_state = get_state(request)
    subdomain = body.subdomain.strip().lower()

    problem = subdomain_problem(subdomain)
    if problem:
        raise HTTPException(status_code=400, detail=problem)

    with app_state.database.session_scope() as session:
        repo = LeagueRepository(session)
        if repo.get_by_sleeper_id(body.sleeper_league_id) is not None:
            raise HTTPException(status_code=409, detail="This league is already registered")
        if repo.get_by_subdomain(subdomain) is not None:
            raise HTTPException(status_code=409, detail="Subdomain is already taken")

    try:
        sleeper_league = await app_state.sleeper.get_league(body.sleeper_league_id)
    except DataNotAvailableError:
        raise HTTPException(status_code=404, detail="Sleeper league not found")
    except DataSourceError as e:
        logger.error(f"Could not verify Sleeper league {body.sleeper_league_id}: {e}")
        raise HTTPException(status_code=502, detail="Unable to verify Sleeper league")

    name = body.name or sleeper_league.get("name") or subdomain
    with app_state.database.session_scope() as session:
        league = LeagueRepository(session).create(
            subdomain=subdomain,
            sleeper_league_id=body.sleeper_league_id,
            name=name,
            commissioner_email=body.commissioner_email,
        )
        league_id = league.id

    members = 0
    try:
        users = await app_state.sleeper.get_users(body.sleeper_league_id)
        rosters = await app_state.sleeper.get_rosters(body.sleeper_league_id)
        members = len(app_state.accounts.sync_members(body.sleeper_league_id, users, rosters))
    except DataSourceError as e:
        logger.warning(f"League {subdomain} registered but member import failed: {e}")

    logger.info(f"Registered league {name} at {subdomain} with {members} members")
    return {
        "success": True,
        "league": {
            "id": league_id,
            "name": name,
            "subdomain": subdomain,
            "sleeper_league_id": body.sleeper_league_id,
            "url": f"https://{subdomain}.{app_state.settings.base_domain}",
        },
        "members_imported": members,
    }
