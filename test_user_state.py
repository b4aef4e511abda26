"""Tests for the user state machine."""

import asyncio
from datetime import timedelta

import pytest

from xuibot.core.errors import InputError, InvalidStateError, UserNotFoundError
from xuibot.core.types import UserState, ExpectedAction
from xuibot.services.user_state_service import UserStateService, DENIAL_REASONS
from xuibot.utils.time_helpers import utcnow


def make_service(user_repo, history_repo=None):
    return UserStateService(user_repo, history_repo)


def test_ensure_user_creates_active_user_once(user_repo):
    service = make_service(user_repo)
    
    async def run():
        first = await service.ensure_user(42, "alice", "Alice")
        second = await service.ensure_user(42, "alice", "Alice")
        return first, second
    
    first, second = asyncio.run(run())
    
    assert first.state == UserState.ACTIVE
    assert first.expected_action == ExpectedAction.NONE
    assert second.id == 42
    assert len(user_repo.users) == 1


def test_permission_check_on_active_user_is_idempotent(user_repo):
    service = make_service(user_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        return [await service.can_perform_action(42) for _ in range(5)]
    
    results = asyncio.run(run())
    
    assert results == [(True, "")] * 5
    assert user_repo.state_writes == 0, "Permission check mutated an active user"


def test_expired_suspension_auto_activates_as_system(user_repo):
    service = make_service(user_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        await service.set_state(
            42, UserState.SUSPENDED, ExpectedAction.CONTACT_SUPPORT, "spam",
            7, "moderator", expires_at=utcnow() - timedelta(minutes=1),
        )
        return await service.can_perform_action(42)
    
    assert asyncio.run(run()) == (True, "")
    
    stored = user_repo.users[42]
    assert stored.state == UserState.ACTIVE
    assert stored.expected_action == ExpectedAction.NONE
    assert stored.state_changed_by_id == 0
    assert stored.state_changed_by_username == "system"
    assert stored.state_expires_at is None


def test_running_suspension_is_denied(user_repo):
    service = make_service(user_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        await service.suspend_user(42, "spam", timedelta(hours=1), 7, "moderator")
        return await service.can_perform_action(42)
    
    allowed, reason = asyncio.run(run())
    
    assert not allowed
    assert reason == DENIAL_REASONS[UserState.SUSPENDED]
    stored = user_repo.users[42]
    assert stored.state_metadata["suspend_reason"] == "spam"
    assert stored.state_expires_at > utcnow()


@pytest.mark.parametrize("state", [
    UserState.INACTIVE,
    UserState.BLOCKED,
    UserState.PENDING_VERIFICATION,
    UserState.DELETED,
])
def test_denied_states_report_fixed_reason(user_repo, state):
    service = make_service(user_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        await service.set_state(42, state, ExpectedAction.NONE, "test", 7, "moderator")
        return await service.can_perform_action(42)
    
    assert asyncio.run(run()) == (False, DENIAL_REASONS[state])


def test_unknown_state_is_denied(user_repo):
    service = make_service(user_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        user_repo.set_fields(42, state="archived")
        return await service.can_perform_action(42)
    
    assert asyncio.run(run()) == (False, "Unknown state")


def test_missing_user_is_denied(user_repo):
    service = make_service(user_repo)
    
    assert asyncio.run(service.can_perform_action(404)) == (False, "User not found")


def test_set_state_on_missing_user_fails(user_repo):
    service = make_service(user_repo)
    
    with pytest.raises(UserNotFoundError):
        asyncio.run(service.block_user(404, "abuse", 7, "moderator"))


def test_invalid_target_state_is_rejected_without_write(user_repo):
    service = make_service(user_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        await service.set_state(42, "superuser", ExpectedAction.NONE, "x", 7, "moderator")
    
    with pytest.raises(InvalidStateError):
        asyncio.run(run())
    assert user_repo.users[42].state == UserState.ACTIVE
    assert user_repo.state_writes == 0


def test_named_transitions_use_canonical_fields(user_repo):
    service = make_service(user_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        await service.block_user(42, "abuse", 7, "moderator")
        blocked = await service.get_user_state(42)
        await service.request_verification(42, "new device", 7, "moderator")
        pending = await service.get_user_state(42)
        await service.activate_user(42, 7, "moderator")
        active = await service.get_user_state(42)
        return blocked, pending, active
    
    blocked, pending, active = asyncio.run(run())
    
    assert (blocked.state, blocked.expected_action) == ("blocked", "contact_support")
    assert blocked.state_metadata["block_reason"] == "abuse"
    assert (pending.state, pending.expected_action) == ("pending_verification", "verify_email")
    assert (active.state, active.expected_action) == ("active", "none")
    assert active.state_reason == "user activated"


def test_block_requires_reason(user_repo):
    service = make_service(user_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        await service.block_user(42, "", 7, "moderator")
    
    with pytest.raises(InputError):
        asyncio.run(run())


def test_transitions_are_recorded_in_history(user_repo, history_repo):
    service = make_service(user_repo, history_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        await service.block_user(42, "abuse", 7, "moderator")
        await service.activate_user(42, 7, "moderator")
        return await service.get_state_history(42)
    
    history = asyncio.run(run())
    
    assert [(h.old_state, h.new_state) for h in history] == [
        ("blocked", "active"),
        ("active", "blocked"),
    ]
    assert history[1].changed_by_username == "moderator"


def test_history_failure_keeps_transition(user_repo, failing_history_repo):
    service = make_service(user_repo, failing_history_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        await service.block_user(42, "abuse", 7, "moderator")
    
    asyncio.run(run())
    assert user_repo.users[42].state == UserState.BLOCKED


def test_state_queries_and_statistics(user_repo):
    service = make_service(user_repo)
    
    async def run():
        for user_id in (1, 2, 3):
            await service.ensure_user(user_id, f"user{user_id}")
        await service.block_user(2, "abuse", 7, "moderator")
        await service.set_state(
            3, UserState.SUSPENDED, ExpectedAction.CONTACT_SUPPORT, "spam", 7, "moderator",
            expires_at=utcnow() - timedelta(seconds=5),
        )
        blocked = await service.get_users_by_state("blocked")
        waiting = await service.get_users_by_expected_action(ExpectedAction.CONTACT_SUPPORT)
        expired = await service.get_expired_states()
        stats = await service.get_state_statistics()
        return blocked, waiting, expired, stats
    
    blocked, waiting, expired, stats = asyncio.run(run())
    
    assert [u.id for u in blocked] == [2]
    assert sorted(u.id for u in waiting) == [2, 3]
    assert [u.id for u in expired] == [3]
    assert stats["total_users"] == 3
    assert stats["by_state"] == {"active": 1, "blocked": 1, "suspended": 1}
    assert stats["by_action"] == {"none": 1, "contact_support": 2}
    assert stats["combinations"]["blocked_contact_support"] == 1


def test_is_user_active(user_repo):
    service = make_service(user_repo)
    
    async def run():
        await service.ensure_user(42, "alice")
        before = await service.is_user_active(42)
        await service.delete_user(42, "left", 7, "moderator")
        after = await service.is_user_active(42)
        missing = await service.is_user_active(404)
        return before, after, missing
    
    assert asyncio.run(run()) == (True, False, False)
