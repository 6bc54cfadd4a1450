"""
Building blocks shared by the API handlers.

Every handler is the same explicit composition:

    validate (pydantic request models) -> authorize -> invoke -> shape response

Errors raised by the core are mapped to HTTP statuses here, in one place:
- NotFoundError       -> 404
- ValidationError     -> 400
- AliasConflictError  -> 409
- anything persistent -> 500 with a generic message (details are logged)
"""

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from soylenti.errors import AliasConflictError, NotFoundError, SoylentiError, ValidationError
from soylenti.feeds.base import RumorItem
from soylenti.web.auth import AuthProvider, UserInfo
from soylenti.web.flags import FeatureFlags

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Internal error, the operation was not applied"


# =============================================================================
# Request models (validate)
# =============================================================================

class MergeRequest(BaseModel):
    primary_id: int = Field(..., gt=0)
    duplicate_id: int = Field(..., gt=0)


class AliasRequest(BaseModel):
    alias: str = Field(..., min_length=1, max_length=255)


class AliasUpdateRequest(BaseModel):
    aliases: Optional[list[str]] = None
    display_name: Optional[str] = Field(default=None, max_length=255)


class NewsPlayerLinkRequest(BaseModel):
    news_id: int = Field(..., gt=0)
    player_name: str = Field(..., min_length=1, max_length=255)
    role: str = Field(default="mentioned", max_length=20)


class NewsPlayerUnlinkRequest(BaseModel):
    news_id: int = Field(..., gt=0)
    player_id: int = Field(..., gt=0)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


# =============================================================================
# Authorize
# =============================================================================

def authorize(
    auth: AuthProvider,
    request: Request,
    roles: Iterable[str] = ("admin",),
) -> UserInfo:
    """
    Return the current user if their role is allowed.

    Raises:
        HTTPException: 401 when nobody is logged in, 403 for other roles
    """
    user = auth.current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    if user.role not in tuple(roles):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return user


def require_flag(flags: FeatureFlags, name: str) -> None:
    """Disabled features behave as if the route did not exist."""
    if not flags.is_enabled(name):
        raise HTTPException(status_code=404, detail="Feature not enabled")


# =============================================================================
# Invoke + shape response
# =============================================================================

def error_status(exc: Exception) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, AliasConflictError):
        return 409
    return 500


def error_response(exc: Exception, debug: bool = False) -> JSONResponse:
    status = error_status(exc)
    if status == 500:
        logger.error("Request failed: %r", exc)
        message = str(exc) if debug else GENERIC_ERROR
    else:
        message = str(exc)
    return JSONResponse({"success": False, "error": message}, status_code=status)


def shape_response(data: Optional[dict[str, Any]] = None, status_code: int = 200) -> JSONResponse:
    payload: dict[str, Any] = {"success": True}
    if data:
        payload.update(data)
    return JSONResponse(payload, status_code=status_code)


def invoke(
    operation: Callable[[], Optional[dict[str, Any]]],
    debug: bool = False,
) -> JSONResponse:
    """Run a core operation and shape its result (or its error) into a response."""
    try:
        data = operation()
    except (SoylentiError, SQLAlchemyError) as exc:
        return error_response(exc, debug=debug)
    return shape_response(data)


MERGE_ERROR_STATUS = {"validation": 400, "conflict": 409, "persistence": 500}


# =============================================================================
# Serializers
# =============================================================================

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def rumor_item_to_dict(item: RumorItem) -> dict[str, Any]:
    return {
        "title": item.title,
        "link": item.link,
        "pub_date": _iso(item.pub_date),
        "source": item.source.value,
        "description": item.description,
    }


def player_to_dict(player) -> dict[str, Any]:
    return {
        "id": player.id,
        "name": player.name,
        "display_name": player.display_name,
        "normalized_name": player.normalized_name,
        "aliases": sorted(player.alias_names),
        "rumor_count": player.rumor_count,
        "first_seen_at": _iso(player.first_seen_at),
        "last_seen_at": _iso(player.last_seen_at),
    }


def rumor_to_dict(rumor) -> dict[str, Any]:
    return {
        "id": rumor.id,
        "title": rumor.title,
        "link": rumor.link,
        "pub_date": _iso(rumor.pub_date),
        "source": rumor.source,
        "description": rumor.description,
    }
