"""
User endpoints:
  POST /api/user/register   — create an account and start a session
  POST /api/user/login      — start a session
  GET  /api/user/logout     — end the session
  GET  /api/user/me         — the caller's profile
  GET  /api/user/{id}       — another user's profile
  POST /api/user/follow/{id} — follow / unfollow toggle
"""
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, status
from opentelemetry import trace
from starlette.concurrency import run_in_threadpool
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.auth import (
    clear_token_cookie,
    create_token,
    get_current_user,
    hash_password,
    set_token_cookie,
    verify_password,
)
from pinboard.database import get_db
from pinboard.models import Follow, User
from pinboard.schemas import (
    AuthResponse,
    FollowResponse,
    MessageResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from pinboard.telemetry import AUTH_FAILURES_TOTAL, FOLLOW_TOGGLES_TOTAL, USERS_REGISTERED_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def parse_id(value: str, label: str) -> str:
    """Normalise a path id, 400 if it is not a UUID."""
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID")


async def _email_taken(db: AsyncSession, email: str) -> bool:
    existing = await db.execute(select(User).where(User.email == email))
    return existing.scalar_one_or_none() is not None


async def _find_follow(db: AsyncSession, follower_id: str, followee_id: str):
    existing = await db.execute(
        select(Follow).where(
            Follow.follower_id == follower_id,
            Follow.followee_id == followee_id,
        )
    )
    return existing.scalar_one_or_none()


async def build_user_response(db: AsyncSession, user: User) -> UserResponse:
    followers = await db.execute(
        select(Follow.follower_id).where(Follow.followee_id == user.user_id)
    )
    following = await db.execute(
        select(Follow.followee_id).where(Follow.follower_id == user.user_id)
    )
    return UserResponse(
        id=user.user_id,
        name=user.name,
        email=user.email,
        followers=list(followers.scalars().all()),
        following=list(following.scalars().all()),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(body: UserRegister, response: Response, db: AsyncSession = Depends(get_db)):
    """Create an account and log it in straight away (token cookie is set)."""
    with tracer.start_as_current_span("register_user"):
        email = body.email.lower()
        if await _email_taken(db, email):
            raise HTTPException(status_code=400, detail="Email already registered")

        # bcrypt is CPU-bound; keep it off the event loop
        password_hash = await run_in_threadpool(hash_password, body.password)
        user = User(name=body.name, email=email, password_hash=password_hash)
        db.add(user)
        try:
            await db.flush()  # get user_id before issuing the token
        except IntegrityError:
            # lost a race with a concurrent registration for the same email
            raise HTTPException(status_code=400, detail="Email already registered")

        set_token_cookie(response, create_token(user.user_id))
        USERS_REGISTERED_TOTAL.inc()
        logger.info("Registered user %s (id=%s)", user.email, user.user_id)
        return AuthResponse(user=await build_user_response(db, user), message="User Registered")


@router.post("/login", response_model=AuthResponse)
async def login(body: UserLogin, response: Response, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()
    if not user:
        AUTH_FAILURES_TOTAL.labels(reason="bad_credentials").inc()
        raise HTTPException(status_code=400, detail="No user with this email")
    if not await run_in_threadpool(verify_password, body.password, user.password_hash):
        AUTH_FAILURES_TOTAL.labels(reason="bad_credentials").inc()
        raise HTTPException(status_code=400, detail="Wrong password")

    set_token_cookie(response, create_token(user.user_id))
    return AuthResponse(user=await build_user_response(db, user), message="Logged in")


@router.get("/logout", response_model=MessageResponse)
async def logout(response: Response, user: User = Depends(get_current_user)):
    clear_token_cookie(response)
    return MessageResponse(message="Logged Out Successfully")


@router.get("/me", response_model=UserResponse)
async def my_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await build_user_response(db, user)


@router.get("/{user_id}", response_model=UserResponse)
async def user_profile(
    user_id: str,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(User, parse_id(user_id, "user"))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return await build_user_response(db, user)


@router.post("/follow/{user_id}", response_model=FollowResponse)
async def follow_toggle(
    user_id: str,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Follow the target if the caller doesn't already, unfollow otherwise.

    The graph is a single follows edge per pair, so the followers and
    following lists of both users change together inside the request's
    transaction.
    """
    with tracer.start_as_current_span("follow_toggle") as span:
        target_id = parse_id(user_id, "user")
        if target_id == current.user_id:
            raise HTTPException(status_code=400, detail="You can't follow yourself")

        if not await db.get(User, target_id):
            raise HTTPException(status_code=404, detail="User not found")

        span.set_attribute("follow.follower_id", current.user_id)
        span.set_attribute("follow.followee_id", target_id)

        if await _find_follow(db, current.user_id, target_id):
            await db.execute(
                delete(Follow).where(
                    Follow.follower_id == current.user_id,
                    Follow.followee_id == target_id,
                )
            )
            FOLLOW_TOGGLES_TOTAL.labels(action="unfollow").inc()
            logger.info("%s unfollowed %s", current.user_id, target_id)
            return FollowResponse(message="User Unfollowed", following=False)

        follower_id = current.user_id
        db.add(Follow(follower_id=current.user_id, followee_id=target_id))
        try:
            await db.flush()
        except IntegrityError:
            # a concurrent request already created the edge
            await db.rollback()
            logger.info("%s already follows %s", follower_id, target_id)
            return FollowResponse(message="User Followed", following=True)
        FOLLOW_TOGGLES_TOTAL.labels(action="follow").inc()
        logger.info("%s followed %s", current.user_id, target_id)
        return FollowResponse(message="User Followed", following=True)
