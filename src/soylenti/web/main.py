"""
FastAPI application exposing the rumour pipeline.

Public routes (feature flagged):
- GET  /api/features                              flag states for the frontend
- GET  /api/soylenti/rumors                       live feed fetch
- GET  /api/soylenti/trending                     trending players
- GET  /api/soylenti/players/{name}/rumors        rumours linked to a player

Admin routes (session cookie, see web/auth.py):
- POST /admin/login, POST /admin/logout
- POST /api/admin/soylenti/sync                   run one ingestion cycle
- POST /api/admin/players/merge                   merge duplicate players
- GET  /api/admin/players/duplicates              likely duplicate pairs
- GET|POST|PATCH|DELETE /api/admin/players/{id}/aliases
- POST|DELETE /api/admin/soylenti/news-players    manual rumour links

The database session, auth provider, feature flags and rumour fetcher are
all dependencies, so tests replace them through app.dependency_overrides.
"""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from soylenti.config import settings
from soylenti.db.models import NewsPlayer, Rumor
from soylenti.db.session import get_db
from soylenti.errors import NotFoundError, ValidationError
from soylenti.feeds.fetcher import fetch_all_rumors
from soylenti.players import identity
from soylenti.players.duplicates import find_duplicate_candidates, pick_primary
from soylenti.players.index import AliasIndex
from soylenti.players.matcher import remove_mention
from soylenti.players.merge import merge_players
from soylenti.services.rumor_sync import RumorFetcher, RumorSyncService
from soylenti.trending import trending_players
from soylenti.web.auth import (
    ADMIN_SESSION_KEY,
    AuthProvider,
    SessionAuthProvider,
    authenticate_admin,
    mark_admin_login,
)
from soylenti.web.flags import FLAG_FIELDS, FeatureFlags, SettingsFeatureFlags
from soylenti.web.pipeline import (
    MERGE_ERROR_STATUS,
    AliasRequest,
    AliasUpdateRequest,
    LoginRequest,
    MergeRequest,
    NewsPlayerLinkRequest,
    NewsPlayerUnlinkRequest,
    authorize,
    invoke,
    player_to_dict,
    require_flag,
    rumor_item_to_dict,
    rumor_to_dict,
    shape_response,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Soylenti")
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.admin_session_secret,
    max_age=settings.admin_session_max_age_seconds,
)

EDITOR_ROLES = ("admin", "editor")


# =============================================================================
# Dependencies
# =============================================================================

def get_auth_provider(db: Session = Depends(get_db)) -> AuthProvider:
    return SessionAuthProvider(db)


def get_feature_flags() -> FeatureFlags:
    return SettingsFeatureFlags()


def get_rumor_fetcher() -> RumorFetcher:
    return fetch_all_rumors


def _debug(flags: FeatureFlags) -> bool:
    return flags.is_enabled("show-debug-info")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 like every other validation failure."""
    details = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return JSONResponse(
        {"success": False, "error": "Invalid request", "details": details},
        status_code=400,
    )


# =============================================================================
# Public API
# =============================================================================

@app.get("/api/features")
async def api_features(flags: FeatureFlags = Depends(get_feature_flags)):
    return shape_response({"flags": {name: flags.is_enabled(name) for name in FLAG_FIELDS}})


@app.get("/api/soylenti/rumors")
async def api_rumors(
    flags: FeatureFlags = Depends(get_feature_flags),
    fetcher: RumorFetcher = Depends(get_rumor_fetcher),
):
    """Live rumours straight from the feeds (nothing is stored)."""
    require_flag(flags, "show-soylenti")
    items = await fetcher()
    return shape_response({
        "rumors": [rumor_item_to_dict(item) for item in items],
        "total": len(items),
    })


@app.get("/api/soylenti/trending")
def api_trending(
    db: Session = Depends(get_db),
    flags: FeatureFlags = Depends(get_feature_flags),
    limit: int = Query(settings.trending_limit, ge=1, le=100),
):
    require_flag(flags, "show-trending")

    def operation():
        ranked = trending_players(db, limit=limit)
        return {
            "players": [
                {
                    "id": p.player_id,
                    "name": p.display_name or p.name,
                    "normalized_name": p.normalized_name,
                    "rumor_count": p.rumor_count,
                    "last_seen_at": p.last_seen_at.isoformat() if p.last_seen_at else None,
                    "trend_score": round(p.trend_score, 3),
                    "velocity": p.velocity,
                    "phase": p.phase,
                    "days_since_last_mention": p.days_since_last_mention,
                    "timeline": p.timeline,
                }
                for p in ranked
            ]
        }

    return invoke(operation, debug=_debug(flags))


@app.get("/api/soylenti/players/{normalized_name}/rumors")
def api_player_rumors(
    normalized_name: str,
    db: Session = Depends(get_db),
    flags: FeatureFlags = Depends(get_feature_flags),
    limit: int = Query(50, ge=1, le=200),
):
    require_flag(flags, "show-soylenti")

    def operation():
        player_id = AliasIndex(db).resolve(normalized_name)
        if player_id is None:
            raise NotFoundError(f"Player '{normalized_name}' not found")
        player = identity.get_active_player(db, player_id)
        rumors = (
            db.query(Rumor)
            .join(NewsPlayer, NewsPlayer.news_id == Rumor.id)
            .filter(NewsPlayer.player_id == player_id, Rumor.is_hidden.is_(False))
            .order_by(Rumor.pub_date.desc())
            .limit(limit)
            .all()
        )
        return {
            "player": player_to_dict(player),
            "rumors": [rumor_to_dict(r) for r in rumors],
        }

    return invoke(operation, debug=_debug(flags))


# =============================================================================
# Admin session
# =============================================================================

@app.post("/admin/login")
def admin_login(
    body: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    admin = authenticate_admin(db, body.username, body.password)
    if not admin:
        return JSONResponse(
            {"success": False, "error": "Invalid username or password."},
            status_code=401,
        )

    request.session[ADMIN_SESSION_KEY] = admin.id
    mark_admin_login(db, admin)
    db.commit()
    logger.info("Operator %s logged in", admin.username)
    return shape_response({"username": admin.username, "role": admin.role})


@app.post("/admin/logout")
async def admin_logout(request: Request):
    request.session.pop(ADMIN_SESSION_KEY, None)
    return shape_response()


# =============================================================================
# Admin API
# =============================================================================

@app.post("/api/admin/soylenti/sync")
async def api_admin_sync(
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
    fetcher: RumorFetcher = Depends(get_rumor_fetcher),
):
    authorize(auth, request)
    result = await RumorSyncService(db, fetcher=fetcher).sync()
    return shape_response({
        "fetched": result.fetched,
        "duplicates": result.duplicates,
        "inserted": result.inserted,
        "matched": result.matched,
        "mentions": result.mentions,
        "errors": len(result.errors),
    })


@app.post("/api/admin/players/merge")
def api_admin_merge(
    body: MergeRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
):
    user = authorize(auth, request)
    result = merge_players(db, body.primary_id, body.duplicate_id)
    if not result.success:
        return JSONResponse(
            {"success": False, "error": result.error, "error_kind": result.error_kind},
            status_code=MERGE_ERROR_STATUS.get(result.error_kind, 500),
        )

    logger.info(
        "Operator %s merged player %s into %s",
        user.user_id, body.duplicate_id, body.primary_id,
    )
    return shape_response({
        "news_transferred": result.news_transferred,
        "aliases_added": result.aliases_added,
    })


@app.get("/api/admin/players/duplicates")
def api_admin_duplicates(
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
    threshold: Optional[float] = Query(None, ge=0.0, le=1.0),
):
    authorize(auth, request)
    candidates = find_duplicate_candidates(db, threshold=threshold)
    payload = []
    for c in candidates:
        primary_id, duplicate_id = pick_primary(c)
        payload.append({
            "player_a": {"id": c.player_a_id, "name": c.player_a_name, "rumors": c.rumors_a},
            "player_b": {"id": c.player_b_id, "name": c.player_b_name, "rumors": c.rumors_b},
            "score": round(c.score, 4),
            "matched_on": [c.match_alias_a, c.match_alias_b],
            "suggested_primary_id": primary_id,
            "suggested_duplicate_id": duplicate_id,
        })
    return shape_response({"candidates": payload})


@app.get("/api/admin/players/{player_id}/aliases")
def api_admin_get_aliases(
    player_id: int,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
    flags: FeatureFlags = Depends(get_feature_flags),
):
    authorize(auth, request, EDITOR_ROLES)
    return invoke(
        lambda: {"player": player_to_dict(identity.get_active_player(db, player_id))},
        debug=_debug(flags),
    )


@app.post("/api/admin/players/{player_id}/aliases")
def api_admin_add_alias(
    player_id: int,
    body: AliasRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
    flags: FeatureFlags = Depends(get_feature_flags),
):
    authorize(auth, request, EDITOR_ROLES)

    def operation():
        identity.add_alias(db, player_id, body.alias)
        return {"player": player_to_dict(identity.get_active_player(db, player_id))}

    return invoke(operation, debug=_debug(flags))


@app.patch("/api/admin/players/{player_id}/aliases")
def api_admin_update_aliases(
    player_id: int,
    body: AliasUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
    flags: FeatureFlags = Depends(get_feature_flags),
):
    authorize(auth, request, EDITOR_ROLES)
    fields = body.model_fields_set

    def operation():
        if "aliases" not in fields and "display_name" not in fields:
            raise ValidationError("Nothing to update")
        if "aliases" in fields:
            identity.set_aliases(db, player_id, body.aliases or [])
        if "display_name" in fields:
            identity.set_display_name(db, player_id, body.display_name)
        return {"player": player_to_dict(identity.get_active_player(db, player_id))}

    return invoke(operation, debug=_debug(flags))


@app.delete("/api/admin/players/{player_id}/aliases")
def api_admin_remove_alias(
    player_id: int,
    body: AliasRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
    flags: FeatureFlags = Depends(get_feature_flags),
):
    authorize(auth, request, EDITOR_ROLES)

    def operation():
        identity.remove_alias(db, player_id, body.alias)
        return {"player": player_to_dict(identity.get_active_player(db, player_id))}

    return invoke(operation, debug=_debug(flags))


@app.post("/api/admin/soylenti/news-players")
def api_admin_link_player(
    body: NewsPlayerLinkRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
    flags: FeatureFlags = Depends(get_feature_flags),
):
    authorize(auth, request, EDITOR_ROLES)

    def operation():
        player = identity.link_player_to_rumor(db, body.news_id, body.player_name, body.role)
        return {"player": player_to_dict(player)}

    return invoke(operation, debug=_debug(flags))


@app.delete("/api/admin/soylenti/news-players")
def api_admin_unlink_player(
    body: NewsPlayerUnlinkRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
    flags: FeatureFlags = Depends(get_feature_flags),
):
    authorize(auth, request, EDITOR_ROLES)

    def operation():
        if not remove_mention(db, body.player_id, body.news_id):
            raise NotFoundError("Player is not linked to this rumour")
        return None

    return invoke(operation, debug=_debug(flags))


# Only for debugging
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("soylenti.web.main:app", host=settings.api_host, port=settings.api_port, reload=True)
