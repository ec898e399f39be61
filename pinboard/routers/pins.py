"""
Pin endpoints (all require a session):
  POST   /api/pin/new                 — create a pin (multipart: title, pin, file)
  GET    /api/pin/all                 — every pin, newest first
  GET    /api/pin/{id}                — a single pin
  PUT    /api/pin/{id}                — edit title / body (owner only)
  DELETE /api/pin/{id}                — delete pin + hosted image (owner only)
  POST   /api/pin/comment/{id}        — comment on a pin
  DELETE /api/pin/comment/{id}?commentId= — delete one's own comment
"""
import logging
from datetime import datetime, timezone

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.auth import get_current_user
from pinboard.clients.image_store import delete_image, get_image_url, upload_image
from pinboard.config import settings
from pinboard.database import get_db
from pinboard.models import Comment, Pin, User
from pinboard.routers.users import parse_id
from pinboard.schemas import (
    CommentCreate,
    CommentResponse,
    ImageResponse,
    MessageResponse,
    PinMutationResponse,
    PinResponse,
    PinUpdate,
)
from pinboard.telemetry import IMAGE_STORE_ERRORS_TOTAL, PINS_CREATED_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _build_pin_response(pin: Pin) -> PinResponse:
    return PinResponse(
        id=pin.pin_id,
        title=pin.title,
        pin=pin.pin,
        owner=pin.owner_id,
        image=ImageResponse(id=pin.image_id, url=get_image_url(pin.image_id)),
        comments=[
            CommentResponse(
                id=c.comment_id,
                user=c.user_id,
                name=c.name,
                comment=c.comment,
                created_at=c.created_at,
            )
            for c in pin.comments
        ],
        created_at=pin.created_at,
        updated_at=pin.updated_at,
    )


async def _get_pin_or_404(db: AsyncSession, pin_id: str) -> Pin:
    pin = await db.get(Pin, parse_id(pin_id, "pin"))
    if not pin:
        raise HTTPException(status_code=404, detail="Pin not found")
    return pin


def _require_owner(pin: Pin, user: User) -> None:
    if pin.owner_id != user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")


@router.post("/new", response_model=PinMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_pin(
    title: str = Form(..., min_length=1, max_length=255),
    pin: str = Form(..., min_length=1),
    file: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    1. Validate the upload (present, an image, within the size cap).
    2. Push the bytes to MinIO.
    3. Persist the pin with the object key as its image id.
    """
    with tracer.start_as_current_span("create_pin") as span:
        if file is None:
            raise HTTPException(status_code=400, detail="No file uploaded")

        # one byte past the cap is enough to know it is too large
        data = await file.read(settings.max_image_bytes + 1)
        if not data:
            raise HTTPException(status_code=400, detail="No file uploaded")
        content_type = file.content_type or ""
        if not content_type.startswith("image/"):
            raise HTTPException(status_code=400, detail="Uploaded file must be an image")
        if len(data) > settings.max_image_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Image too large",
            )

        try:
            image_id = upload_image(data, content_type, file.filename)
        except (BotoCoreError, ClientError) as exc:
            IMAGE_STORE_ERRORS_TOTAL.labels(op="upload").inc()
            logger.warning("Image upload failed: %s", exc)
            raise HTTPException(status_code=500, detail="Error uploading file")

        new_pin = Pin(title=title, pin=pin, owner_id=user.user_id, image_id=image_id, comments=[])
        db.add(new_pin)
        await db.flush()  # materialise pin_id

        span.set_attribute("pin.id", new_pin.pin_id)
        span.set_attribute("pin.owner_id", user.user_id)

        PINS_CREATED_TOTAL.inc()
        logger.info("Pin created: %s by user %s", new_pin.pin_id, user.user_id)
        return PinMutationResponse(message="Pin Created", pin=_build_pin_response(new_pin))


@router.get("/all", response_model=list[PinResponse])
async def get_all_pins(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(select(Pin).order_by(Pin.created_at.desc()))
    return [_build_pin_response(p) for p in rows.scalars().all()]


@router.get("/{pin_id}", response_model=PinResponse)
async def get_pin(
    pin_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _build_pin_response(await _get_pin_or_404(db, pin_id))


@router.put("/{pin_id}", response_model=PinMutationResponse)
async def update_pin(
    pin_id: str,
    body: PinUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("update_pin"):
        pin = await _get_pin_or_404(db, pin_id)
        _require_owner(pin, user)

        if body.title is not None:
            pin.title = body.title
        if body.pin is not None:
            pin.pin = body.pin
        pin.updated_at = datetime.now(timezone.utc)
        await db.flush()

        return PinMutationResponse(message="Pin updated", pin=_build_pin_response(pin))


@router.delete("/{pin_id}", response_model=MessageResponse)
async def delete_pin(
    pin_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Remove the hosted image first; if that fails the pin is kept."""
    with tracer.start_as_current_span("delete_pin"):
        pin = await _get_pin_or_404(db, pin_id)
        _require_owner(pin, user)

        try:
            delete_image(pin.image_id)
        except (BotoCoreError, ClientError) as exc:
            IMAGE_STORE_ERRORS_TOTAL.labels(op="delete").inc()
            logger.warning("Image delete failed for pin %s: %s", pin.pin_id, exc)
            raise HTTPException(status_code=500, detail="Error deleting image")

        await db.delete(pin)
        logger.info("Pin deleted: %s by user %s", pin.pin_id, user.user_id)
        return MessageResponse(message="Pin Deleted")


@router.post("/comment/{pin_id}", response_model=MessageResponse)
async def comment_on_pin(
    pin_id: str,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    pin = await _get_pin_or_404(db, pin_id)
    pin.comments.append(Comment(user_id=user.user_id, name=user.name, comment=body.comment))
    logger.debug("Comment added to pin %s by %s", pin.pin_id, user.user_id)
    return MessageResponse(message="Comment Added")


@router.delete("/comment/{pin_id}", response_model=MessageResponse)
async def delete_comment(
    pin_id: str,
    comment_id: str = Query(..., alias="commentId"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Only the comment's author may delete it, and only from the pin it belongs to."""
    result = await db.execute(
        select(Comment).where(
            Comment.comment_id == parse_id(comment_id, "comment"),
            Comment.pin_id == parse_id(pin_id, "pin"),
        )
    )
    comment = result.scalar_one_or_none()
    if not comment or comment.user_id != user.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized or comment not found",
        )

    await db.delete(comment)
    return MessageResponse(message="Comment Deleted")
