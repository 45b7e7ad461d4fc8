"""Subscription router: follow/unfollow channels and list both sides of the relation."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.subscription import Subscription
from models.user import User
from routers.auth_scope import get_current_user
from routers.envelope import api_response
from routers.schemas import serialize_owner
from services.dashboard import require_channel
from services.errors import Conflict, InvalidArgument
from services.identity import require_valid_id

router = APIRouter()
logger = logging.getLogger(__name__)


async def _find_subscription(db: AsyncSession, subscriber_id: str, channel_id: str) -> Optional[Subscription]:
    result = await db.execute(
        select(Subscription).where(
            Subscription.subscriber_id == subscriber_id,
            Subscription.channel_id == channel_id,
        )
    )
    return result.unique().scalar_one_or_none()


@router.post("/c/{channel_id}")
async def toggle_subscription(
    channel_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Subscribe to a channel, or unsubscribe when already subscribed."""
    channel_id = require_valid_id(channel_id, "channel")
    if channel_id == user.id:
        raise InvalidArgument("You cannot subscribe to your own channel")
    await require_channel(db, channel_id)

    subscription = await _find_subscription(db, user.id, channel_id)
    if subscription:
        await db.delete(subscription)
        await db.commit()
        return api_response({"channel_id": channel_id, "subscribed": False}, "Unsubscribed successfully")

    db.add(Subscription(subscriber_id=user.id, channel_id=channel_id))
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise Conflict("Subscription is already being updated") from exc
    logger.info("User %s subscribed to %s", user.id, channel_id)
    return api_response({"channel_id": channel_id, "subscribed": True}, "Subscribed successfully")


@router.get("/c/{channel_id}")
async def get_channel_subscribers(
    channel_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    channel_id = require_valid_id(channel_id, "channel")
    await require_channel(db, channel_id)
    result = await db.execute(
        select(Subscription)
        .where(Subscription.channel_id == channel_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
    )
    subscribers = [serialize_owner(row.subscriber) for row in result.unique().scalars().all()]
    return api_response(
        {"subscribers": subscribers, "total_count": len(subscribers)},
        "Subscribers fetched successfully",
    )


@router.get("/u/{subscriber_id}")
async def get_subscribed_channels(
    subscriber_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    subscriber_id = require_valid_id(subscriber_id, "subscriber")
    result = await db.execute(
        select(Subscription)
        .where(Subscription.subscriber_id == subscriber_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
    )
    channels = [serialize_owner(row.channel) for row in result.unique().scalars().all()]
    return api_response(
        {"channels": channels, "total_count": len(channels)},
        "Subscribed channels fetched successfully",
    )
