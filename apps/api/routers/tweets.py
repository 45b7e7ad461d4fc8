"""Tweet router."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.tweet import Tweet
from models.user import User
from routers.auth_scope import get_current_user
from routers.envelope import api_response
from routers.schemas import serialize_tweet
from services.identity import require_text, require_valid_id
from services.ownership import delete_owned, get_owned_or_404
from services.pagination import PageParams, page_params, paginate

router = APIRouter()


class TweetRequest(BaseModel):
    content: str = ""


@router.post("", status_code=201)
async def create_tweet(
    request: TweetRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    content = require_text(request.content, "Tweet content")
    tweet = Tweet(owner=user, content=content)
    db.add(tweet)
    await db.commit()
    return api_response(serialize_tweet(tweet), "Tweet created successfully", 201)


@router.get("/user/{user_id}")
async def get_user_tweets(
    user_id: str,
    params: PageParams = Depends(page_params),
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = require_valid_id(user_id, "user")
    stmt = select(Tweet).where(Tweet.owner_id == user_id)
    page = await paginate(
        db,
        stmt,
        params,
        [Tweet.created_at.desc(), Tweet.id.desc()],
        serialize=serialize_tweet,
    )
    return api_response(page.as_dict(), "User tweets fetched successfully")


@router.patch("/{tweet_id}")
async def update_tweet(
    tweet_id: str,
    request: TweetRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tweet_id = require_valid_id(tweet_id, "tweet")
    content = require_text(request.content, "Updated content")

    tweet = await get_owned_or_404(db, Tweet, tweet_id, user.id, "Tweet")
    tweet.content = content
    await db.commit()
    return api_response(serialize_tweet(tweet), "Tweet updated successfully")


@router.delete("/{tweet_id}")
async def delete_tweet(
    tweet_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tweet_id = require_valid_id(tweet_id, "tweet")
    await delete_owned(db, Tweet, tweet_id, user.id, "Tweet")
    return api_response(None, "Tweet deleted successfully")
