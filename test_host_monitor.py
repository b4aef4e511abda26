"""Tests for the host monitor: sweep reconciliation and lifecycle."""

import asyncio

import pytest

from xuibot.core.errors import HostNotFoundError, MonitorStateError
from xuibot.core.types import ProbeOutcome
from xuibot.services.host_monitor_service import HostMonitorService


def make_monitor(host_repo, probe, notifier, **kwargs):
    return HostMonitorService(host_repo, probe, notifier, **kwargs)


def test_sweep_marks_only_failing_host_inactive(host_repo, notifier, make_probe):
    a = host_repo.add_host("https://a.example:2053")
    b = host_repo.add_host("https://b.example:2053")
    c = host_repo.add_host("https://c.example:2053")
    probe = make_probe({b.url: ProbeOutcome(reachable=False, error="login failed: bad password")})
    monitor = make_monitor(host_repo, probe, notifier)
    
    report = asyncio.run(monitor.check_all_hosts())
    
    assert report.checked == 3
    assert host_repo.hosts[a.id].is_active
    assert not host_repo.hosts[b.id].is_active
    assert host_repo.hosts[c.id].is_active
    assert host_repo.hosts[b.id].last_error == "login failed: bad password"
    
    assert len(notifier.inactive_reports) == 1
    assert [r.host_id for r in notifier.inactive_reports[0]] == [b.id]
    assert notifier.reactivated_reports == []


def test_recovered_host_is_reactivated_and_reported(host_repo, notifier, make_probe):
    host = host_repo.add_host("https://down.example", is_active=False)
    monitor = make_monitor(host_repo, make_probe(), notifier)
    
    report = asyncio.run(monitor.check_all_hosts())
    
    assert host_repo.hosts[host.id].is_active
    assert [r.host_id for r in report.reactivated] == [host.id]
    assert report.failed == []
    assert [r.host_id for r in notifier.reactivated_reports[0]] == [host.id]
    assert notifier.inactive_reports == []


def test_inactive_host_is_still_probed(host_repo, notifier, make_probe):
    host = host_repo.add_host("https://down.example", is_active=False)
    probe = make_probe({host.url: ProbeOutcome(reachable=False, error="timeout")})
    monitor = make_monitor(host_repo, probe, notifier)
    
    asyncio.run(monitor.check_all_hosts())
    
    assert probe.calls == 1
    assert not host_repo.hosts[host.id].is_active
    assert len(notifier.inactive_reports) == 1


def test_steady_state_sweep_sends_nothing(host_repo, notifier, make_probe):
    host_repo.add_host("https://a.example")
    host_repo.add_host("https://b.example")
    monitor = make_monitor(host_repo, make_probe(), notifier)
    
    report = asyncio.run(monitor.check_all_hosts())
    
    assert report.summary() == {"checked": 2, "failed": 0, "reactivated": 0}
    assert notifier.inactive_reports == []
    assert notifier.reactivated_reports == []
    assert host_repo.set_active_calls == []


def test_probe_exception_fails_only_that_host(host_repo, notifier, make_probe):
    good = host_repo.add_host("https://good.example")
    bad = host_repo.add_host("https://bad.example")
    probe = make_probe({bad.url: RuntimeError("boom")})
    monitor = make_monitor(host_repo, probe, notifier)
    
    report = asyncio.run(monitor.check_all_hosts())
    
    assert [r.host_id for r in report.failed] == [bad.id]
    assert report.failed[0].error == "boom"
    assert host_repo.hosts[good.id].is_active


def test_storage_failure_does_not_abort_sweep(host_repo, notifier, make_probe):
    recovered = host_repo.add_host("https://recovered.example", is_active=False)
    stuck = host_repo.add_host("https://stuck.example")
    down = host_repo.add_host("https://down.example")
    host_repo.failing_writes.add(stuck.id)
    probe = make_probe({
        stuck.url: ProbeOutcome(reachable=False, error="timeout"),
        down.url: ProbeOutcome(reachable=False, error="bad status: 502"),
    })
    monitor = make_monitor(host_repo, probe, notifier)
    
    report = asyncio.run(monitor.check_all_hosts())
    
    assert report.checked == 3
    assert sorted(r.host_id for r in notifier.inactive_reports[0]) == [stuck.id, down.id]
    assert [r.host_id for r in notifier.reactivated_reports[0]] == [recovered.id]
    assert host_repo.hosts[stuck.id].is_active
    assert not host_repo.hosts[down.id].is_active
    assert host_repo.hosts[recovered.id].is_active
    assert monitor.last_report is report

def test_probes_respect_concurrency_cap(host_repo, notifier, make_probe):
    for i in range(10):
        host_repo.add_host(f"https://h{i}.example")
    probe = make_probe(delay=0.02)
    monitor = make_monitor(host_repo, probe, notifier, max_concurrency=3)
    
    asyncio.run(monitor.check_all_hosts())
    
    assert probe.calls == 10
    assert 1 < probe.max_in_flight <= 3


def test_start_twice_fails(host_repo, notifier, make_probe):
    monitor = make_monitor(host_repo, make_probe(), notifier, check_interval=60)
    
    async def run():
        await monitor.start()
        try:
            with pytest.raises(MonitorStateError):
                await monitor.start()
        finally:
            await monitor.stop()
    
    asyncio.run(run())
    assert not monitor.is_running()


def test_stop_when_stopped_fails(host_repo, notifier, make_probe):
    monitor = make_monitor(host_repo, make_probe(), notifier)
    
    with pytest.raises(MonitorStateError):
        asyncio.run(monitor.stop())


def test_first_sweep_runs_immediately(host_repo, notifier, make_probe):
    host_repo.add_host("https://a.example")
    probe = make_probe()
    monitor = make_monitor(host_repo, probe, notifier, check_interval=3600)
    
    async def run():
        await monitor.start()
        await asyncio.sleep(0.05)
        await monitor.stop()
    
    asyncio.run(run())
    assert probe.calls == 1
    assert monitor.last_report is not None


def test_no_probes_after_stop_returns(host_repo, notifier, make_probe):
    host_repo.add_host("https://a.example")
    host_repo.add_host("https://b.example")
    probe = make_probe(delay=0.01)
    monitor = make_monitor(host_repo, probe, notifier, check_interval=0.02)
    
    async def run():
        await monitor.start()
        await asyncio.sleep(0.15)
        await monitor.stop()
        calls_at_stop = probe.calls
        finished_at_stop = probe.finished
        await asyncio.sleep(0.1)
        return calls_at_stop, finished_at_stop
    
    calls_at_stop, finished_at_stop = asyncio.run(run())
    
    assert calls_at_stop >= 2
    assert finished_at_stop == calls_at_stop, "Stop returned with a probe in flight"
    assert probe.calls == calls_at_stop


def test_stop_waits_for_in_flight_sweep(host_repo, notifier, make_probe):
    host_repo.add_host("https://slow.example")
    probe = make_probe(delay=0.1)
    monitor = make_monitor(host_repo, probe, notifier, check_interval=3600)
    
    async def run():
        await monitor.start()
        await asyncio.sleep(0.02)
        assert probe.in_flight == 1
        await monitor.stop()
    
    asyncio.run(run())
    assert probe.in_flight == 0
    assert probe.finished == 1


def test_monitor_can_restart(host_repo, notifier, make_probe):
    monitor = make_monitor(host_repo, make_probe(), notifier, check_interval=3600)
    
    async def run():
        await monitor.start()
        await monitor.stop()
        await monitor.start()
        running = monitor.is_running()
        await monitor.stop()
        return running
    
    assert asyncio.run(run())


def test_stop_after_loop_was_cancelled_elsewhere(host_repo, notifier, make_probe):
    monitor = make_monitor(host_repo, make_probe(), notifier, check_interval=3600)
    
    async def run():
        await monitor.start()
        await asyncio.sleep(0.02)
        monitor._task.cancel()
        await asyncio.sleep(0)
        await monitor.stop()
        stopped = not monitor.is_running()
        await monitor.start()
        restarted = monitor.is_running()
        await monitor.stop()
        return stopped, restarted
    
    assert asyncio.run(run()) == (True, True)

def test_check_host_now_skips_notifications(host_repo, notifier, make_probe):
    host = host_repo.add_host("https://a.example")
    probe = make_probe({host.url: ProbeOutcome(reachable=False, error="bad status: 502")})
    monitor = make_monitor(host_repo, probe, notifier)
    
    result = asyncio.run(monitor.check_host_now(host.id))
    
    assert not result.success
    assert result.was_active
    assert result.error == "bad status: 502"
    assert not host_repo.hosts[host.id].is_active
    assert notifier.inactive_reports == []


def test_check_host_now_unknown_host(host_repo, notifier, make_probe):
    monitor = make_monitor(host_repo, make_probe(), notifier)
    
    with pytest.raises(HostNotFoundError):
        asyncio.run(monitor.check_host_now(99))


def test_monitoring_status(host_repo, notifier, make_probe):
    host_repo.add_host("https://a.example")
    monitor = make_monitor(host_repo, make_probe(), notifier, check_interval=300, max_concurrency=4)
    
    before = monitor.get_monitoring_status()
    asyncio.run(monitor.check_all_hosts())
    after = monitor.get_monitoring_status()
    
    assert before["is_running"] is False
    assert before["last_sweep_summary"] is None
    assert after["check_interval"] == "5m"
    assert after["max_concurrency"] == 4
    assert after["last_sweep_summary"] == {"checked": 1, "failed": 0, "reactivated": 0}
