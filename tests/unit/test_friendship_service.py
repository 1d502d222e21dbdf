"""
Unit tests for FriendshipService.

Repositories are replaced with mocks and DatabaseService is patched, so
these tests cover the orchestration: validation, locking reads, state
machine delegation, persistence calls and event publishing after commit.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from src.core.logging.logger import get_logger
from src.database.models.social.friendship import Friendship as FriendshipRow
from src.database.models.social.profile import Profile
from src.domain.models.friendship import pair_key
from src.modules.friendship import FriendshipService
from src.modules.shared.exceptions import (
    AlreadyFriendsError,
    DuplicateRequestError,
    InvalidSelfRequestError,
    InvalidTransitionError,
    NoSuchEdgeError,
    NotFoundError,
    RequestBlockedError,
    ValidationError,
)
from tests.conftest import published_events, published_payload


def _profile(user_id: str) -> Profile:
    return Profile(id=user_id, username=f"{user_id}_writes", full_name=user_id.title())


def _row(user_id: str, friend_id: str, status: str = "pending", **overrides) -> FriendshipRow:
    fields = dict(
        id=f"f-{user_id}-{friend_id}",
        user_id=user_id,
        friend_id=friend_id,
        pair_key=pair_key(user_id, friend_id),
        status=status,
        requested_by=user_id,
        blocked_by=None,
    )
    fields.update(overrides)
    return FriendshipRow(**fields)


@pytest.fixture
def service(mocker, mock_config_manager, mock_event_bus, mock_database):
    svc = FriendshipService(
        config_manager=mock_config_manager,
        event_bus=mock_event_bus,
        logger=get_logger("tests.friendship"),
    )

    profiles = {uid: _profile(uid) for uid in ("alice", "bob", "carol")}
    svc._profile_repo = mocker.MagicMock()
    svc._profile_repo.find_by_ids = mocker.AsyncMock(
        side_effect=lambda session, ids: {i: profiles[i] for i in ids if i in profiles}
    )

    svc._friendship_repo = mocker.MagicMock()
    svc._friendship_repo.find_by_pair = mocker.AsyncMock(return_value=None)
    svc._friendship_repo.get = mocker.AsyncMock(return_value=None)
    svc._friendship_repo.find_for_user = mocker.AsyncMock(return_value=[])
    svc._friendship_repo.flush = mocker.AsyncMock()
    svc._friendship_repo.delete = mocker.AsyncMock()
    return svc


# ============================================================================
# SEND REQUEST
# ============================================================================


@pytest.mark.unit
@pytest.mark.service
class TestSendRequest:
    async def test_new_request_is_persisted_and_published(self, service, mock_event_bus, mock_database):
        # Act
        result = await service.send_request("alice", "bob")

        # Assert
        assert result["status"] == "pending"
        assert result["requested_by"] == "alice"

        service._friendship_repo.find_by_pair.assert_awaited_once()
        assert service._friendship_repo.find_by_pair.await_args.kwargs["for_update"] is True

        added = service._friendship_repo.add.call_args.args[1]
        assert added.id == result["friendship_id"]
        assert added.pair_key == "alice:bob"
        assert added.status == "pending"

        mock_database[0].assert_called_once()
        assert published_events(mock_event_bus) == ["friendship.request_sent"]
        payload = published_payload(mock_event_bus, "friendship.request_sent")
        assert payload["target_id"] == "bob"
        assert "occurred_at" in payload

    async def test_self_request_fails_before_touching_the_database(self, service, mock_database):
        with pytest.raises(InvalidSelfRequestError):
            await service.send_request("alice", "alice")

        mock_database[0].assert_not_called()

    async def test_blank_id_is_validation_error(self, service):
        with pytest.raises(ValidationError):
            await service.send_request("  ", "bob")

    async def test_unknown_target_profile(self, service, mock_event_bus):
        with pytest.raises(NotFoundError) as exc_info:
            await service.send_request("alice", "zed")

        assert exc_info.value.identifier == "zed"
        mock_event_bus.publish.assert_not_awaited()

    async def test_pending_pair_is_duplicate(self, service):
        service._friendship_repo.find_by_pair.return_value = _row("bob", "alice")

        with pytest.raises(DuplicateRequestError):
            await service.send_request("alice", "bob")

    async def test_accepted_pair_is_already_friends(self, service):
        service._friendship_repo.find_by_pair.return_value = _row("alice", "bob", "accepted")

        with pytest.raises(AlreadyFriendsError):
            await service.send_request("alice", "bob")

    async def test_blocked_pair_is_rejected(self, service, mock_event_bus):
        service._friendship_repo.find_by_pair.return_value = _row(
            "alice", "bob", "blocked", blocked_by="bob"
        )

        with pytest.raises(RequestBlockedError):
            await service.send_request("alice", "bob")

        mock_event_bus.publish.assert_not_awaited()

    async def test_concurrent_insert_surfaces_as_duplicate(self, service, mock_event_bus):
        service._friendship_repo.flush.side_effect = IntegrityError(
            "INSERT INTO friendships", {}, Exception("duplicate key value")
        )

        with pytest.raises(DuplicateRequestError):
            await service.send_request("alice", "bob")

        mock_event_bus.publish.assert_not_awaited()

    async def test_declined_edge_is_reopened_in_place(self, service, config_values):
        # Arrange
        config_values["friendships.decline_policy"] = "decline"
        row = _row("alice", "bob", "declined")
        service._friendship_repo.find_by_pair.return_value = row

        # Act
        result = await service.send_request("bob", "alice")

        # Assert
        service._friendship_repo.add.assert_not_called()
        assert row.status == "pending"
        assert row.requested_by == "bob"
        assert row.user_id == "bob"
        assert result["friendship_id"] == row.id


# ============================================================================
# RESPOND
# ============================================================================


@pytest.mark.unit
@pytest.mark.service
class TestRespond:
    async def test_accept(self, service, mock_event_bus):
        row = _row("alice", "bob")
        service._friendship_repo.get.return_value = row

        result = await service.respond(row.id, "bob", "ACCEPT")

        assert result["status"] == "accepted"
        assert row.status == "accepted"
        assert row.responded_at is not None
        assert service._friendship_repo.get.await_args.kwargs["for_update"] is True
        assert published_events(mock_event_bus) == ["friendship.request_accepted"]

    async def test_decline_blocks_by_default(self, service):
        row = _row("alice", "bob")
        service._friendship_repo.get.return_value = row

        await service.respond(row.id, "bob", "decline")

        assert row.status == "blocked"
        assert row.blocked_by == "bob"

    async def test_decline_policy_is_read_from_config(self, service, config_values):
        config_values["friendships.decline_policy"] = "decline"
        row = _row("alice", "bob")
        service._friendship_repo.get.return_value = row

        await service.respond(row.id, "bob", "decline")

        assert row.status == "declined"
        assert row.blocked_by is None

    async def test_requester_cannot_accept_own_request(self, service, mock_event_bus):
        row = _row("alice", "bob")
        service._friendship_repo.get.return_value = row

        with pytest.raises(InvalidTransitionError):
            await service.respond(row.id, "alice", "accept")

        assert row.status == "pending"
        mock_event_bus.publish.assert_not_awaited()

    async def test_missing_friendship(self, service):
        with pytest.raises(NotFoundError):
            await service.respond("nope", "bob", "accept")

    async def test_unknown_action(self, service):
        with pytest.raises(ValidationError):
            await service.respond("f-1", "bob", "ignore")


# ============================================================================
# BLOCK / REMOVE
# ============================================================================


@pytest.mark.unit
@pytest.mark.service
class TestBlockAndRemove:
    async def test_block_without_edge_inserts_row(self, service, mock_event_bus):
        result = await service.block("alice", "carol")

        added = service._friendship_repo.add.call_args.args[1]
        assert added.status == "blocked"
        assert added.blocked_by == "alice"
        assert result["status"] == "blocked"
        assert published_events(mock_event_bus) == ["friendship.blocked"]

    async def test_block_existing_friend(self, service):
        row = _row("alice", "bob", "accepted")
        service._friendship_repo.find_by_pair.return_value = row

        await service.block("bob", "alice")

        service._friendship_repo.add.assert_not_called()
        assert row.status == "blocked"
        assert row.blocked_by == "bob"

    async def test_remove_deletes_row(self, service, mock_event_bus):
        row = _row("alice", "bob", "accepted")
        service._friendship_repo.find_by_pair.return_value = row

        result = await service.remove("bob", "alice")

        service._friendship_repo.delete.assert_awaited_once()
        assert service._friendship_repo.delete.await_args.args[1] is row
        assert result == {
            "friendship_id": row.id,
            "removed_by": "bob",
            "previous_status": "accepted",
        }
        assert published_events(mock_event_bus) == ["friendship.removed"]

    async def test_remove_without_edge(self, service):
        with pytest.raises(NoSuchEdgeError):
            await service.remove("alice", "bob")

        service._friendship_repo.delete.assert_not_awaited()

    async def test_remove_self_is_validation_error(self, service, mock_database, mock_event_bus):
        with pytest.raises(ValidationError) as exc_info:
            await service.remove("alice", "alice")

        assert exc_info.value.field == "other_id"
        mock_database[0].assert_not_called()
        service._friendship_repo.find_by_pair.assert_not_awaited()
        mock_event_bus.publish.assert_not_awaited()


# ============================================================================
# READS
# ============================================================================


@pytest.mark.unit
@pytest.mark.service
class TestReads:
    async def test_overview_resolves_profiles(self, service, mock_database):
        # Arrange
        service._friendship_repo.find_for_user.return_value = [
            _row("alice", "bob", "accepted"),
            _row("alice", "carol"),
            _row("dave", "alice"),
        ]

        # Act
        overview = await service.get_overview("alice")

        # Assert
        assert [f["username"] for f in overview["friends"]] == ["bob_writes"]
        assert [s["user"]["id"] for s in overview["sent"]] == ["carol"]
        received = overview["received"][0]
        assert received["user"] == {
            "id": "dave",
            "username": None,
            "full_name": None,
            "avatar_url": None,
        }
        mock_database[1].assert_called_once()
        mock_database[0].assert_not_called()

    async def test_overview_caps_friend_list(self, service, config_values):
        config_values["friendships.max_overview_friends"] = 1
        service._friendship_repo.find_for_user.return_value = [
            _row("alice", "bob", "accepted"),
            _row("carol", "alice", "accepted"),
        ]

        overview = await service.get_overview("alice")

        assert len(overview["friends"]) == 1

    async def test_status_without_edge(self, service):
        status = await service.get_status("alice", "bob")

        assert status["status"] == "none"
        assert status["friendship_id"] is None

    async def test_status_of_blocked_pair(self, service):
        service._friendship_repo.find_by_pair.return_value = _row(
            "alice", "bob", "blocked", blocked_by="alice"
        )

        status = await service.get_status("bob", "alice")

        assert status["status"] == "blocked"
        assert status["blocked_by"] == "alice"
