import pytest
from sqlalchemy.future import select

from models.tweet import Tweet
from models.user import User
from services.pagination import PageParams, paginate, total_pages_for


@pytest.mark.parametrize(
    "total_count,limit,expected",
    [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (25, 5, 5)],
)
def test_total_pages_is_ceiling_of_count_over_limit(total_count, limit, expected):
    assert total_pages_for(total_count, limit) == expected


def test_skip_is_derived_from_page_and_limit():
    assert PageParams(page=1, limit=10).skip == 0
    assert PageParams(page=3, limit=7).skip == 14


@pytest.mark.asyncio
async def test_paginate_counts_filtered_rows_and_slices_ordered_page(session_maker):
    async with session_maker() as session:
        author = User(
            username="writer",
            email="writer@example.com",
            full_name="Writer",
            avatar="https://res.cloudinary.test/image/upload/w",
            password_hash="unused",
        )
        session.add(author)
        await session.flush()
        session.add_all([Tweet(owner_id=author.id, content=f"tweet {i:02d}") for i in range(7)])
        await session.commit()

        page = await paginate(
            session,
            select(Tweet).where(Tweet.owner_id == author.id),
            PageParams(page=2, limit=3),
            [Tweet.content.asc()],
            serialize=lambda tweet: tweet.content,
        )

    assert page.as_dict() == {
        "items": ["tweet 03", "tweet 04", "tweet 05"],
        "total_count": 7,
        "current_page": 2,
        "total_pages": 3,
    }
