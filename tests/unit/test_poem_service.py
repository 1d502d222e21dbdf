"""
Unit tests for PoemService.

Covers theme creation and closing, poem submission and like toggling with
repositories mocked and DatabaseService patched.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.logging.logger import get_logger
from src.database.models.content.poem import Poem
from src.database.models.content.poem_like import PoemLike
from src.database.models.content.theme import Theme
from src.database.models.social.profile import Profile
from src.modules.poems import PoemService
from src.modules.shared.exceptions import InvalidOperationError, NotFoundError, ValidationError
from tests.conftest import published_events, published_payload


def _theme(**overrides) -> Theme:
    fields = dict(
        id="t-1",
        title="Night vs Day",
        description=None,
        duality_option_1="Night",
        duality_option_2="Day",
        created_by="alice",
        is_active=True,
        end_date=None,
        winning_side=None,
    )
    fields.update(overrides)
    return Theme(**fields)


def _poem(**overrides) -> Poem:
    fields = dict(
        id="p-1",
        theme_id="t-1",
        author_id="alice",
        title="Moonrise",
        content="silver on the water",
        side="option_1",
        likes_count=0,
        is_winner=False,
    )
    fields.update(overrides)
    return Poem(**fields)


@pytest.fixture
def service(mocker, mock_config_manager, mock_event_bus, mock_database, mock_session):
    svc = PoemService(
        config_manager=mock_config_manager,
        event_bus=mock_event_bus,
        logger=get_logger("tests.poems"),
    )
    for name in ("_theme_repo", "_poem_repo", "_like_repo"):
        repo = mocker.MagicMock()
        repo.get = mocker.AsyncMock(return_value=None)
        repo.flush = mocker.AsyncMock()
        repo.delete = mocker.AsyncMock()
        setattr(svc, name, repo)
    svc._like_repo.find_for_user = mocker.AsyncMock(return_value=None)
    svc._poem_repo.likes_by_side = mocker.AsyncMock(return_value={})

    mock_session.get.return_value = Profile(id="alice", username="alice_writes")
    return svc


# ============================================================================
# THEMES
# ============================================================================


@pytest.mark.unit
@pytest.mark.service
class TestCreateTheme:
    async def test_create_theme(self, service, mock_event_bus):
        # Arrange - give the row an id as a flush would
        service._theme_repo.flush.side_effect = lambda session: setattr(
            service._theme_repo.add.call_args.args[1], "id", "t-new"
        )

        # Act
        theme = await service.create_theme("alice", "  Fire vs Ice ", "", "Fire", "Ice")

        # Assert
        assert theme["id"] == "t-new"
        assert theme["title"] == "Fire vs Ice"
        assert theme["description"] is None
        assert theme["is_active"] is True
        assert published_payload(mock_event_bus, "theme.created") == {
            "theme_id": "t-new",
            "created_by": "alice",
            "title": "Fire vs Ice",
        }

    async def test_sides_must_differ(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_theme("alice", "Same", None, "Rain", "rain")

        assert exc_info.value.field == "option_2"

    async def test_end_date_must_be_in_the_future(self, service):
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)

        with pytest.raises(ValidationError):
            await service.create_theme("alice", "Late", None, "A", "B", end_date=yesterday)

    async def test_naive_end_date_is_treated_as_utc(self, service):
        tomorrow = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=1)

        theme = await service.create_theme("alice", "Soon", None, "A", "B", end_date=tomorrow)

        assert theme["end_date"].endswith("+00:00")

    async def test_title_length_from_config(self, service, config_values):
        config_values["themes.max_title_length"] = 5

        with pytest.raises(ValidationError):
            await service.create_theme("alice", "Too long a title", None, "A", "B")

    async def test_creator_must_have_profile(self, service, mock_session, mock_event_bus):
        mock_session.get.return_value = None

        with pytest.raises(NotFoundError):
            await service.create_theme("ghost", "Orphan", None, "A", "B")

        mock_event_bus.publish.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.service
class TestCloseTheme:
    async def test_more_liked_side_wins(self, mocker, service, mock_session, mock_event_bus):
        # Arrange
        theme = _theme()
        service._theme_repo.get.return_value = theme
        service._poem_repo.likes_by_side.return_value = {"option_1": 4, "option_2": 9, "neutral": 30}
        update_result = mocker.MagicMock()
        update_result.all.return_value = [("p-2",), ("p-3",)]
        mock_session.execute.return_value = update_result

        # Act
        result = await service.close_theme("t-1", "alice")

        # Assert
        assert theme.is_active is False
        assert theme.winning_side == "option_2"
        assert result["winning_poem_ids"] == ["p-2", "p-3"]
        assert result["likes_by_side"] == {"option_1": 4, "option_2": 9}
        assert published_payload(mock_event_bus, "theme.closed")["winning_side"] == "option_2"

    async def test_tie_has_no_winner(self, service, mock_session):
        theme = _theme()
        service._theme_repo.get.return_value = theme
        service._poem_repo.likes_by_side.return_value = {"option_1": 3, "option_2": 3}

        result = await service.close_theme("t-1", "alice")

        assert theme.winning_side is None
        assert result["winning_poem_ids"] == []
        mock_session.execute.assert_not_awaited()

    async def test_only_creator_may_close(self, service):
        service._theme_repo.get.return_value = _theme()

        with pytest.raises(InvalidOperationError):
            await service.close_theme("t-1", "bob")

    async def test_cannot_close_twice(self, service):
        service._theme_repo.get.return_value = _theme(is_active=False)

        with pytest.raises(InvalidOperationError):
            await service.close_theme("t-1", "alice")

    async def test_missing_theme(self, service):
        with pytest.raises(NotFoundError):
            await service.close_theme("t-404", "alice")


# ============================================================================
# POEMS
# ============================================================================


@pytest.mark.unit
@pytest.mark.service
class TestCreatePoem:
    async def test_create_poem(self, service, mock_event_bus):
        service._theme_repo.get.return_value = _theme()

        poem = await service.create_poem("alice", "t-1", "Dawn", "first light", side="Option_2")

        added = service._poem_repo.add.call_args.args[1]
        assert added.side == "option_2"
        assert added.likes_count == 0
        assert poem["title"] == "Dawn"
        assert published_events(mock_event_bus) == ["poem.created"]

    async def test_default_side_is_neutral(self, service):
        service._theme_repo.get.return_value = _theme()

        poem = await service.create_poem("alice", "t-1", "Dusk", "in between")

        assert poem["side"] == "neutral"

    async def test_unknown_side(self, service):
        with pytest.raises(ValidationError):
            await service.create_poem("alice", "t-1", "Dusk", "in between", side="option_3")

    async def test_content_length_from_config(self, service, config_values):
        config_values["poems.max_content_length"] = 10

        with pytest.raises(ValidationError):
            await service.create_poem("alice", "t-1", "Long", "x" * 11)

    async def test_closed_theme_rejects_poems(self, service):
        service._theme_repo.get.return_value = _theme(is_active=False)

        with pytest.raises(InvalidOperationError):
            await service.create_poem("alice", "t-1", "Late", "too late")

    async def test_ended_theme_rejects_poems(self, service, mock_event_bus):
        ended = datetime.now(timezone.utc) - timedelta(minutes=1)
        service._theme_repo.get.return_value = _theme(end_date=ended)

        with pytest.raises(InvalidOperationError) as exc_info:
            await service.create_poem("alice", "t-1", "Late", "too late")

        assert "ended" in str(exc_info.value)
        service._poem_repo.add.assert_not_called()
        mock_event_bus.publish.assert_not_awaited()

    async def test_naive_end_date_in_the_future_accepts_poems(self, service):
        later = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1)
        service._theme_repo.get.return_value = _theme(end_date=later)

        poem = await service.create_poem("alice", "t-1", "Early", "just in time")

        assert poem["title"] == "Early"

    async def test_missing_theme(self, service):
        with pytest.raises(NotFoundError):
            await service.create_poem("alice", "t-404", "Lost", "nowhere")


@pytest.mark.unit
@pytest.mark.service
class TestListActiveThemes:
    async def test_counts_and_creator_names(self, mocker, service, mock_session):
        # Arrange
        service._theme_repo.find_active = mocker.AsyncMock(
            return_value=[_theme(id="t-1"), _theme(id="t-2", created_by="bob")]
        )
        counts_result = mocker.MagicMock()
        counts_result.all.return_value = [("t-1", 3, 2)]
        creators_result = mocker.MagicMock()
        creators_result.all.return_value = [("alice", "alice_writes"), ("bob", "bob_writes")]
        mock_session.execute.side_effect = [counts_result, creators_result]

        # Act
        themes = await service.list_active_themes()

        # Assert
        assert [
            (t["id"], t["creator_username"], t["total_poems"], t["participants"]) for t in themes
        ] == [
            ("t-1", "alice_writes", 3, 2),
            ("t-2", "bob_writes", 0, 0),
        ]
        assert themes[0]["duality_option_1"] == "Night"

    async def test_unknown_creator_has_no_username(self, mocker, service, mock_session):
        service._theme_repo.find_active = mocker.AsyncMock(return_value=[_theme(created_by="ghost")])
        empty = mocker.MagicMock()
        empty.all.return_value = []
        mock_session.execute.return_value = empty

        themes = await service.list_active_themes()

        assert themes[0]["creator_username"] is None
        assert themes[0]["total_poems"] == 0

    async def test_no_active_themes(self, mocker, service, mock_session):
        service._theme_repo.find_active = mocker.AsyncMock(return_value=[])

        assert await service.list_active_themes() == []
        mock_session.execute.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.service
class TestListPoems:
    async def test_viewer_likes_are_flagged(self, mocker, service, mock_session):
        # Arrange
        poems_result = mocker.MagicMock()
        poems_result.all.return_value = [
            (_poem(id="p-1"), "alice_writes", None),
            (_poem(id="p-2", author_id="bob"), "bob_writes", "https://img/bob.png"),
        ]
        likes_result = mocker.MagicMock()
        likes_result.scalars.return_value.all.return_value = ["p-2"]
        mock_session.execute.side_effect = [poems_result, likes_result]

        # Act
        poems = await service.list_poems(theme_id="t-1", viewer_id="carol")

        # Assert
        assert [(p["id"], p["is_liked"]) for p in poems] == [("p-1", False), ("p-2", True)]
        assert poems[1]["author"] == {"username": "bob_writes", "avatar_url": "https://img/bob.png"}

    async def test_anonymous_viewer_skips_like_lookup(self, mocker, service, mock_session):
        poems_result = mocker.MagicMock()
        poems_result.all.return_value = [(_poem(), "alice_writes", None)]
        mock_session.execute.return_value = poems_result

        poems = await service.list_poems()

        assert poems[0]["is_liked"] is False
        assert mock_session.execute.await_count == 1


# ============================================================================
# LIKES
# ============================================================================


@pytest.mark.unit
@pytest.mark.service
class TestToggleLike:
    async def test_like(self, service, mock_event_bus):
        poem = _poem(likes_count=2)
        service._poem_repo.get.return_value = poem

        result = await service.toggle_like("p-1", "bob")

        assert result == {"poem_id": "p-1", "liked": True, "likes_count": 3}
        like = service._like_repo.add.call_args.args[1]
        assert (like.poem_id, like.user_id) == ("p-1", "bob")
        assert published_payload(mock_event_bus, "poem.liked")["author_id"] == "alice"

    async def test_unlike(self, service, mock_event_bus):
        poem = _poem(likes_count=1)
        existing = PoemLike(poem_id="p-1", user_id="bob")
        service._poem_repo.get.return_value = poem
        service._like_repo.find_for_user.return_value = existing

        result = await service.toggle_like("p-1", "bob")

        assert result["liked"] is False
        assert poem.likes_count == 0
        service._like_repo.delete.assert_awaited_once()
        assert published_events(mock_event_bus) == ["poem.unliked"]

    async def test_unlike_never_goes_negative(self, service):
        service._poem_repo.get.return_value = _poem(likes_count=0)
        service._like_repo.find_for_user.return_value = PoemLike(poem_id="p-1", user_id="bob")

        result = await service.toggle_like("p-1", "bob")

        assert result["likes_count"] == 0

    async def test_self_like_rejected_by_default(self, service):
        service._poem_repo.get.return_value = _poem()

        with pytest.raises(InvalidOperationError):
            await service.toggle_like("p-1", "alice")

    async def test_self_like_allowed_by_config(self, service, config_values):
        config_values["poems.allow_self_like"] = True
        service._poem_repo.get.return_value = _poem()

        result = await service.toggle_like("p-1", "alice")

        assert result["liked"] is True

    async def test_missing_poem(self, service):
        with pytest.raises(NotFoundError):
            await service.toggle_like("p-404", "bob")

    async def test_liker_must_have_profile(self, service, mock_session, mock_event_bus):
        poem = _poem(likes_count=2)
        service._poem_repo.get.return_value = poem
        mock_session.get.return_value = None

        with pytest.raises(NotFoundError) as exc_info:
            await service.toggle_like("p-1", "ghost")

        assert exc_info.value.details["resource_type"] == "Profile"
        assert poem.likes_count == 2
        service._like_repo.add.assert_not_called()
        mock_event_bus.publish.assert_not_awaited()

    async def test_poem_row_is_locked(self, service):
        service._poem_repo.get.return_value = _poem()

        await service.toggle_like("p-1", "bob")

        assert service._poem_repo.get.await_args.kwargs["for_update"] is True
