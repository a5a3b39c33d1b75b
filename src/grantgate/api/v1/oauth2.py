# OAuth2 router: token endpoint.
# Created: 2026-02-20

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from grantgate.api.v1.schemas.oauth2 import TokenErrorResponse, TokenResponse
from grantgate.oauth2.errors import INVALID_CLIENT

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OAuth2"])

# RFC 6749 section 5.1: token responses must not be cached
_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


async def _read_params(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            # Reported by the exchange as a missing grant_type
            logger.info("Token request body is not valid JSON")
            return {}
        return body if isinstance(body, dict) else {}
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


def _error(error: str, description: str | None) -> JSONResponse:
    status = 401 if error == INVALID_CLIENT else 400
    body = TokenErrorResponse(error=error, error_description=description)
    return JSONResponse(status_code=status, content=body.model_dump(), headers=_NO_STORE)


@router.post(
    "/oauth/token",
    response_model=TokenResponse,
    response_model_exclude_none=True,
    responses={400: {"model": TokenErrorResponse}, 401: {"model": TokenErrorResponse}},
)
async def token(request: Request):
    """Exchange an authorization grant for an access token."""
    from grantgate.oauth2.server import get_oauth_server

    params = await _read_params(request)
    exchange = get_oauth_server().exchange(params)
    if not exchange.valid:
        return _error(exchange.error, exchange.error_description)

    body = exchange.commit()
    if body is None:
        return _error(exchange.error, exchange.error_description)

    response = TokenResponse(**body)
    return JSONResponse(content=response.model_dump(exclude_none=True), headers=_NO_STORE)
