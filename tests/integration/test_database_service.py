"""
Integration Tests for DatabaseService and the services on top of it
===================================================================

Purpose
-------
Run against a real PostgreSQL (testcontainers) to verify what mocks cannot:
schema constraints, row locking queries, aggregate SQL and commit/rollback.

Testing Strategy
----------------
- Schema tests use the rolled-back ``db_session`` fixture
- Service tests go through `DatabaseService` (real commits) and use fresh
  ids per test so they never collide
- Deselected by default; run with ``pytest -m integration``
"""

import uuid

import pytest
import pytest_asyncio
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event import EventBus
from src.core.logging.logger import get_logger
from src.database.models import Friendship, Poem, PoemLike, Profile, Theme
from src.modules.friendship import FriendshipService
from src.modules.leaderboard import LeaderboardService
from src.modules.poems import PoemService
from src.modules.shared.exceptions import DuplicateRequestError, RequestBlockedError

pytestmark = pytest.mark.asyncio(loop_scope="session")


def _uid() -> str:
    return str(uuid.uuid4())


def _profile(user_id: str) -> Profile:
    return Profile(id=user_id, username=f"poet_{user_id[:8]}")


# ============================================================================
# SCHEMA TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestSchema:
    async def test_database_connection(self, db_session):
        row = (await db_session.execute(text("SELECT 1 AS value"))).fetchone()

        assert row.value == 1

    async def test_tables_created(self, database_engine):
        async with database_engine.connect() as conn:
            result = await conn.execute(
                text("SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'")
            )
            tables = {row.table_name for row in result.fetchall()}

        assert {
            "profiles",
            "friendships",
            "themes",
            "poems",
            "poem_likes",
            "leaderboard_snapshots",
        } <= tables

    async def test_one_friendship_row_per_pair(self, db_session):
        # Arrange
        a, b = _uid(), _uid()
        db_session.add_all([_profile(a), _profile(b)])
        await db_session.flush()
        key = ":".join(sorted((a, b)))
        db_session.add(Friendship(pair_key=key, user_id=a, friend_id=b, status="pending", requested_by=a))
        await db_session.flush()

        # Act & Assert - the reverse direction maps to the same key
        db_session.add(Friendship(pair_key=key, user_id=b, friend_id=a, status="pending", requested_by=b))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_one_like_per_user_and_poem(self, db_session):
        author, fan = _uid(), _uid()
        db_session.add_all([_profile(author), _profile(fan)])
        theme = Theme(title="Sea", duality_option_1="Calm", duality_option_2="Storm", created_by=author)
        db_session.add(theme)
        await db_session.flush()
        poem = Poem(theme_id=theme.id, author_id=author, title="Tide", content="in and out")
        db_session.add(poem)
        await db_session.flush()

        db_session.add(PoemLike(poem_id=poem.id, user_id=fan))
        await db_session.flush()
        db_session.add(PoemLike(poem_id=poem.id, user_id=fan))

        with pytest.raises(IntegrityError):
            await db_session.flush()


# ============================================================================
# SERVICE TESTS (real transactions)
# ============================================================================


@pytest_asyncio.fixture(loop_scope="session")
async def services(postgres_container, database_engine):
    url = postgres_container.get_connection_url().replace("psycopg2", "asyncpg")
    await DatabaseService.initialize(url)
    ConfigManager.initialize()
    bus = EventBus(ConfigManager)

    def build(cls):
        return cls(config_manager=ConfigManager, event_bus=bus, logger=get_logger(f"tests.{cls.__name__}"))

    yield {
        "friendships": build(FriendshipService),
        "leaderboard": build(LeaderboardService),
        "poems": build(PoemService),
        "bus": bus,
    }

    await DatabaseService.shutdown()


async def _create_profiles(*user_ids: str) -> None:
    async with DatabaseService.get_transaction() as session:
        session.add_all([_profile(user_id) for user_id in user_ids])


@pytest.mark.integration
@pytest.mark.database
class TestTransactions:
    async def test_rollback_on_error(self, services):
        user_id = _uid()

        with pytest.raises(RuntimeError):
            async with DatabaseService.get_transaction() as session:
                session.add(_profile(user_id))
                await session.flush()
                raise RuntimeError("abort")

        async with DatabaseService.get_session() as session:
            assert await session.get(Profile, user_id) is None

    async def test_health_check(self, services):
        assert await DatabaseService.health_check() is True


@pytest.mark.integration
@pytest.mark.database
class TestFriendshipFlow:
    async def test_request_accept_remove_request_again(self, services):
        friendships = services["friendships"]
        alice, bob = _uid(), _uid()
        await _create_profiles(alice, bob)

        sent = await friendships.send_request(alice, bob)
        with pytest.raises(DuplicateRequestError):
            await friendships.send_request(bob, alice)

        await friendships.respond(sent["friendship_id"], bob, "accept")
        overview = await friendships.get_overview(alice)
        assert [f["id"] for f in overview["friends"]] == [bob]
        assert overview["sent"] == [] and overview["received"] == []

        await friendships.remove(alice, bob)
        again = await friendships.send_request(alice, bob)

        assert again["status"] == "pending"
        assert again["friendship_id"] != sent["friendship_id"]

    async def test_decline_blocks_further_requests(self, services):
        friendships = services["friendships"]
        alice, bob = _uid(), _uid()
        await _create_profiles(alice, bob)

        sent = await friendships.send_request(alice, bob)
        await friendships.respond(sent["friendship_id"], bob, "decline")

        with pytest.raises(RequestBlockedError):
            await friendships.send_request(alice, bob)
        assert (await friendships.get_status(bob, alice))["status"] == "blocked"


@pytest.mark.integration
@pytest.mark.database
class TestBattleAndLeaderboard:
    async def test_closed_battle_feeds_the_leaderboard(self, services):
        # Arrange
        poems, leaderboard = services["poems"], services["leaderboard"]
        host, night_poet, day_poet, fan = _uid(), _uid(), _uid(), _uid()
        await _create_profiles(host, night_poet, day_poet, fan)

        theme = await poems.create_theme(host, "Night vs Day", None, "Night", "Day")
        night = await poems.create_poem(night_poet, theme["id"], "Moon", "pale", side="option_1")
        await poems.create_poem(day_poet, theme["id"], "Sun", "gold", side="option_2")
        await poems.toggle_like(night["id"], fan)
        await poems.toggle_like(night["id"], day_poet)

        # Act
        closed = await poems.close_theme(theme["id"], host)
        await leaderboard.refresh_snapshot("overall")

        # Assert
        assert closed["winning_side"] == "option_1"
        assert closed["winning_poem_ids"] == [night["id"]]

        standing = await leaderboard.get_user_standing(night_poet)
        assert (standing["poems_written"], standing["likes_received"], standing["battles_won"]) == (1, 2, 1)
        assert standing["score"] == 5 + 4 + 10

        loser = await leaderboard.get_user_standing(day_poet)
        assert loser["score"] == 5
        assert loser["rank"] > standing["rank"]

        battles = await leaderboard.get_recent_battles(limit=50)
        battle = next(b for b in battles if b["theme_id"] == theme["id"])
        assert battle["winning_label"] == "Night"
        assert battle["participants"] == 2

    async def test_like_count_stays_in_sync(self, services):
        poems = services["poems"]
        author, fan = _uid(), _uid()
        await _create_profiles(author, fan)
        theme = await poems.create_theme(author, "Fire vs Ice", None, "Fire", "Ice")
        poem = await poems.create_poem(author, theme["id"], "Ember", "glow")

        liked = await poems.toggle_like(poem["id"], fan)
        unliked = await poems.toggle_like(poem["id"], fan)

        assert (liked["liked"], liked["likes_count"]) == (True, 1)
        assert (unliked["liked"], unliked["likes_count"]) == (False, 0)
        async with DatabaseService.get_session() as session:
            rows = (await session.execute(select(PoemLike).where(PoemLike.poem_id == poem["id"]))).all()
        assert rows == []
