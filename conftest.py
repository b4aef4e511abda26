"""Shared fixtures: in-memory fakes of repositories, probe and notifier."""

import asyncio
import copy
from types import SimpleNamespace

import pytest

from xuibot.core.errors import StorageError
from xuibot.core.types import ProbeOutcome
from xuibot.security import AdminPolicy, SecretsManager
from xuibot.utils.time_helpers import utcnow


ADMIN_ID = 1
ADMIN_USERNAME = "root_admin"


class FakeUserRepository:
    """UserRepository over a dict. Reads return copies, like detached ORM rows."""
    
    def __init__(self):
        self.users = {}
        self.state_writes = 0
    
    async def get_by_id(self, user_id):
        user = self.users.get(user_id)
        return copy.copy(user) if user else None
    
    async def create(self, user_id, username=None, first_name=None, last_name=None,
                     is_bot=False, state="active", expected_action="none", reason=""):
        now = utcnow()
        self.users[user_id] = SimpleNamespace(
            id=user_id,
            username=username,
            first_name=first_name,
            last_name=last_name,
            is_bot=is_bot,
            state=state,
            expected_action=expected_action,
            state_changed_at=now,
            state_reason=reason,
            state_changed_by_id=0,
            state_changed_by_username="system",
            state_expires_at=None,
            state_metadata={},
            last_activity=now,
        )
        return copy.copy(self.users[user_id])
    
    async def update_state(self, user_id, state, expected_action, reason, changed_by_id,
                           changed_by_username, expires_at=None, metadata=None):
        user = self.users.get(user_id)
        if not user:
            return False
        user.state = state
        user.expected_action = expected_action
        user.state_reason = reason
        user.state_changed_by_id = changed_by_id
        user.state_changed_by_username = changed_by_username
        user.state_changed_at = utcnow()
        user.state_expires_at = expires_at
        user.state_metadata = metadata or {}
        self.state_writes += 1
        return True
    
    async def touch_activity(self, user_id, username=None, first_name=None, last_name=None):
        self.users[user_id].last_activity = utcnow()
    
    async def list_by_state(self, state, limit=50, offset=0):
        found = [u for u in self.users.values() if u.state == state]
        return found[offset:offset + limit]
    
    async def list_by_expected_action(self, action, limit=50, offset=0):
        found = [u for u in self.users.values() if u.expected_action == action]
        return found[offset:offset + limit]
    
    async def list_expired(self, now=None):
        now = now or utcnow()
        return [u for u in self.users.values()
                if u.state_expires_at is not None and u.state_expires_at < now]
    
    async def state_statistics(self):
        counts = {}
        for user in self.users.values():
            key = (user.state, user.expected_action)
            counts[key] = counts.get(key, 0) + 1
        return [(state, action, count) for (state, action), count in sorted(counts.items())]
    
    def set_fields(self, user_id, **fields):
        for name, value in fields.items():
            setattr(self.users[user_id], name, value)


class FakeHistoryRepository:
    def __init__(self, fail=False):
        self.entries = []
        self.fail = fail
    
    async def add(self, **entry):
        if self.fail:
            raise StorageError("history table unavailable")
        self.entries.append(SimpleNamespace(**entry))
        return self.entries[-1]
    
    async def list_for_user(self, user_id, limit=50, offset=0):
        found = [e for e in reversed(self.entries) if e.user_id == user_id]
        return found[offset:offset + limit]


class FakeHostRepository:
    def __init__(self):
        self.hosts = {}
        self.next_id = 1
        self.set_active_calls = []
        self.failing_writes = set()
    
    def add_host(self, url, is_active=True, name=None):
        host = SimpleNamespace(
            id=self.next_id,
            url=url,
            name=name or f"XUI Server - {url}",
            ip="",
            port=80,
            username="admin",
            password_encrypted="",
            secret_key_encrypted=None,
            is_active=is_active,
            last_checked_at=None,
            last_error=None,
        )
        self.hosts[host.id] = host
        self.next_id += 1
        return host
    
    async def get_by_id(self, host_id):
        host = self.hosts.get(host_id)
        return copy.copy(host) if host else None
    
    async def get_by_url(self, url):
        for host in self.hosts.values():
            if host.url == url:
                return copy.copy(host)
        return None
    
    async def list_all(self):
        return [copy.copy(h) for h in self.hosts.values()]
    
    async def list_hosts(self, active_only=None, limit=50, offset=0):
        found = [copy.copy(h) for h in self.hosts.values()
                 if active_only is None or h.is_active == active_only]
        return found[offset:offset + limit]
    
    async def count(self, active_only=None):
        return len(await self.list_hosts(active_only, limit=10 ** 6))
    
    async def create(self, url, name, ip, port, username, password_encrypted, added_by_id,
                     added_by_username=None, secret_key_encrypted=None, location="",
                     is_active=True):
        host = self.add_host(url, is_active=is_active, name=name)
        host.ip = ip
        host.port = port
        host.username = username
        host.password_encrypted = password_encrypted
        host.secret_key_encrypted = secret_key_encrypted
        host.added_by_id = added_by_id
        host.added_by_username = added_by_username
        return copy.copy(host)
    
    async def set_active(self, host_id, is_active, error=None):
        self.set_active_calls.append((host_id, is_active))
        if host_id in self.failing_writes:
            raise StorageError(f"cannot update host {host_id}")
        host = self.hosts.get(host_id)
        if not host:
            return False
        host.is_active = is_active
        host.last_error = None if is_active else error
        host.last_checked_at = utcnow()
        return True


class StubProbe:
    """
    Probe stub. Outcomes are keyed by URL; unknown URLs succeed.
    
    Tracks how many probes ran and the peak number in flight.
    """
    
    def __init__(self, outcomes=None, delay=0.0):
        self.outcomes = outcomes or {}
        self.delay = delay
        self.calls = 0
        self.finished = 0
        self.in_flight = 0
        self.max_in_flight = 0
    
    async def probe(self, url, username, password, two_factor_code=""):
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.outcomes.get(url, ProbeOutcome(reachable=True, accounts=1))
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1
            self.finished += 1
    
    async def probe_host(self, host):
        return await self.probe(host.url, host.username, "")


class FakeNotifier:
    def __init__(self):
        self.inactive_reports = []
        self.reactivated_reports = []
    
    async def notify_inactive_hosts(self, results):
        self.inactive_reports.append(list(results))
        return 1
    
    async def notify_reactivated_hosts(self, results):
        self.reactivated_reports.append(list(results))
        return 1


@pytest.fixture
def user_repo():
    return FakeUserRepository()


@pytest.fixture
def history_repo():
    return FakeHistoryRepository()


@pytest.fixture
def host_repo():
    return FakeHostRepository()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def policy():
    return AdminPolicy([ADMIN_ID], [ADMIN_USERNAME])


@pytest.fixture
def secrets_manager():
    return SecretsManager(SecretsManager.generate_key())


@pytest.fixture
def make_probe():
    """Factory: make_probe(outcomes=None, delay=0.0) -> StubProbe."""
    return StubProbe


@pytest.fixture
def failing_history_repo():
    return FakeHistoryRepository(fail=True)
