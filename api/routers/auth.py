"""Sign-in by Sleeper username."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from api.deps import get_state, resolve_league
from tavern.data.sources.base import DataSourceError

logger = logging.getLogger(__name__)

router = APIRouter()


class SignInRequest(BaseModel):
    sleeper_username: str = Field(min_length=1, max_length=100)


@router.post("/auth/signin")
async def sign_in(request: Request, body: SignInRequest) -> dict[str, Any]:
    """
    Sign a league member in.

    The username must own a roster in the league. Returns a bearer token for
    the betting endpoints.
    """
    app_state = get_state(request)
    league_id = resolve_league(request)

    try:
        users = await app_state.sleeper.get_users(league_id)
        rosters = await app_state.sleeper.get_rosters(league_id)
    except DataSourceError as e:
        logger.error(f"Sign-in lookup failed for league {league_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch league data from Sleeper")

    member, token = app_state.accounts.sign_in(league_id, body.sleeper_username, users, rosters)
    return {
        "token": token,
        "token_type": "bearer",
        "user": member.to_dict(),
    }
