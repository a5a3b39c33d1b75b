# Shared FastAPI dependencies for the API layer.
# Created: 2026-02-20

from __future__ import annotations

from fastapi import HTTPException, Request

from grantgate.oauth2.models import Authorization


def require_scope(*scopes: str):
    """FastAPI dependency that authenticates a bearer token and checks its scopes.

    Usage::

        @router.get("/photos", dependencies=[Depends(require_scope("photos"))])
        async def list_photos(...): ...

    The token must be live and its Authorization must hold every listed scope.
    The Authorization is left on ``request.state.authorization``.
    """

    async def _check(request: Request) -> Authorization:
        from grantgate.oauth2.server import get_oauth_server

        header = request.headers.get("authorization", "")
        kind, _, token = header.partition(" ")
        if kind.lower() != "bearer" or not token.strip():
            raise HTTPException(
                status_code=401,
                detail="Missing bearer token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        auth = get_oauth_server().verify_access_token(token.strip())
        if auth is None:
            raise HTTPException(
                status_code=401,
                detail="Invalid or expired access token",
                headers={"WWW-Authenticate": 'Bearer error="invalid_token"'},
            )

        missing = set(scopes) - auth.scopes
        if missing:
            raise HTTPException(
                status_code=403,
                detail=f"Access token missing required scope: {' '.join(sorted(missing))}",
                headers={"WWW-Authenticate": 'Bearer error="insufficient_scope"'},
            )

        request.state.authorization = auth
        return auth

    return _check
