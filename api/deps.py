"""
Request helpers shared by the routers.

League resolution order: the Host subdomain of the base domain, then the
X-League header (a registered subdomain), then the default league.
"""

import secrets
from typing import Any, Optional

from fastapi import HTTPException, Request

from tavern.database.repository import LeagueRepository

RESERVED_SUBDOMAINS = {"www", "api", "app", "admin"}


def get_state(request: Request) -> Any:
    app_state = request.app.state.app_state
    if not app_state.is_initialized:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return app_state


def subdomain_from_host(host: Optional[str], base_domain: str) -> Optional[str]:
    """'mighty.fantasytavern.com:443' -> 'mighty'; None for the apex or other hosts."""
    if not host:
        return None
    hostname = host.split(":", 1)[0].lower().rstrip(".")
    suffix = "." + base_domain.lower()
    if not hostname.endswith(suffix):
        return None
    subdomain = hostname[: -len(suffix)]
    if not subdomain or "." in subdomain or subdomain in RESERVED_SUBDOMAINS:
        return None
    return subdomain


def resolve_league(request: Request) -> str:
    """
    Sleeper league id the request is for.

    Raises:
        HTTPException: 404 when a named subdomain is not registered
    """
    app_state = get_state(request)
    settings = app_state.settings

    subdomain = subdomain_from_host(request.headers.get("host"), settings.base_domain)
    if subdomain is None:
        subdomain = (request.headers.get("x-league") or "").strip().lower() or None
    if subdomain is None:
        return settings.sleeper.default_league_id

    with app_state.database.session_scope() as session:
        league = LeagueRepository(session).get_by_subdomain(subdomain)
        if league is None:
            raise HTTPException(status_code=404, detail=f"League not found: {subdomain}")
        return league.sleeper_league_id


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_member(request: Request, league_id: str) -> Any:
    """Signed-in member for this league, or 401."""
    token = bearer_token(request)
    member = get_state(request).accounts.authenticate(token, league_id) if token else None
    if member is None:
        raise HTTPException(
            status_code=401,
            detail="Sign in required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return member


def require_admin(request: Request) -> None:
    """Allow only requests bearing the configured admin token."""
    admin_token = get_state(request).settings.betting.admin_token
    if not admin_token:
        raise HTTPException(status_code=403, detail="Admin access is not configured")
    if not secrets.compare_digest(bearer_token(request) or "", admin_token):
        raise HTTPException(status_code=403, detail="Admin token required")
