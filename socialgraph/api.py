"""FastAPI web server for socialgraph."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from socialgraph import SocialClient, SocialConfig, __version__
from socialgraph.core.discovery import format_last_seen, is_online
from socialgraph.core.exporter import to_dict
from socialgraph.exceptions import (
    InvalidOperation,
    OperationTimeout,
    ProfileNotFoundError,
    SocialGraphError,
    StoreError,
)
from socialgraph.models.edge import FollowDirection
from socialgraph.models.profile import ProfileUpdate, UserProfile


# Request/Response models
class FollowRequest(BaseModel):
    """Request body for follow and unfollow."""

    actor_id: str = Field(..., description="User performing the action")
    target_id: str = Field(..., description="User being followed or unfollowed")


class FollowResponse(BaseModel):
    """Outcome of a follow or unfollow."""

    actor_id: str
    target_id: str
    following: bool
    changed: bool


class RegisterRequest(BaseModel):
    """Request body for profile creation."""

    uid: str
    email: str | None = None
    username: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


# Global client instance
_client: Optional[SocialClient] = None


def _graph():
    if _client is None:
        raise RuntimeError("socialgraph API is not started")
    return _client.graph


def _card(profile: UserProfile) -> dict:
    """Profile plus the presence fields a profile card displays."""
    window = _graph().online_window
    data = to_dict(profile)
    data["online"] = is_online(profile, window=window)
    data["last_seen_label"] = format_last_seen(profile, window=window)
    return data


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage client lifecycle."""
    global _client
    _client = SocialClient(SocialConfig())
    await _client.__aenter__()
    yield
    await _client.__aexit__(None, None, None)
    _client = None


app = FastAPI(
    title="socialgraph API",
    description="Follow graph and presence service",
    version=__version__,
    lifespan=lifespan,
)

_STATUS_CODES: list[tuple[type[SocialGraphError], int]] = [
    (InvalidOperation, 400),
    (ProfileNotFoundError, 404),
    (OperationTimeout, 504),
    (StoreError, 503),
]


@app.exception_handler(SocialGraphError)
async def social_graph_error_handler(request: Request, exc: SocialGraphError):
    """Map domain errors to HTTP status codes."""
    status_code = next(
        (code for error_type, code in _STATUS_CODES if isinstance(exc, error_type)),
        500,
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now().isoformat(),
    )


@app.post("/api/profiles", status_code=201, tags=["Profiles"])
async def register_profile(request: RegisterRequest):
    """Create the profile document for a newly registered account."""
    profile = await _graph().create_profile(request.uid, request.email, request.username)
    return _card(profile)


@app.get("/api/profiles/{uid}", tags=["Profiles"])
async def get_profile(uid: str):
    """Fetch one normalized profile."""
    profile = await _graph().fetch_profile(uid)
    if profile is None:
        raise ProfileNotFoundError(f"Profile not found: {uid}")
    return _card(profile)


@app.put("/api/profiles/{uid}", tags=["Profiles"])
async def update_profile(uid: str, update: ProfileUpdate):
    """Apply a profile edit."""
    return _card(await _graph().update_profile(uid, update))


@app.post("/api/follow", response_model=FollowResponse, tags=["Graph"])
async def follow(request: FollowRequest):
    """Follow a user; repeating the call changes nothing."""
    changed = await _graph().follow(request.actor_id, request.target_id)
    return FollowResponse(
        actor_id=request.actor_id,
        target_id=request.target_id,
        following=True,
        changed=changed,
    )


@app.post("/api/unfollow", response_model=FollowResponse, tags=["Graph"])
async def unfollow(request: FollowRequest):
    """Unfollow a user; unfollowing someone not followed changes nothing."""
    changed = await _graph().unfollow(request.actor_id, request.target_id)
    return FollowResponse(
        actor_id=request.actor_id,
        target_id=request.target_id,
        following=False,
        changed=changed,
    )


@app.get("/api/users/{uid}/{direction}", tags=["Graph"])
async def follow_list(uid: str, direction: FollowDirection):
    """List the profiles uid follows, or that follow uid."""
    sub = await _graph().subscribe_to_follow_list(uid, direction)
    try:
        profiles = await anext(sub)
    finally:
        sub.cancel()
    return {"uid": uid, "direction": direction.value, "profiles": [_card(p) for p in profiles]}


@app.post("/api/users/{uid}/reconcile", tags=["Graph"])
async def reconcile(uid: str):
    """Recompute counters from the edge sets."""
    return _card(await _graph().reconcile_counters(uid))


@app.get("/api/feed/{viewer_id}", tags=["Discovery"])
async def discovery_feed(viewer_id: str, limit: int = 50):
    """Ranked discovery feed excluding the viewer."""
    profiles = await _graph().discovery_feed(viewer_id)
    return {"viewer_id": viewer_id, "profiles": [_card(p) for p in profiles[:limit]]}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
