"""Periodic concurrent health checks of registered x-ui hosts."""

import asyncio
import logging
from typing import Optional, Dict, Any

from xuibot.core.constants import Constants
from xuibot.core.errors import HostNotFoundError, MonitorStateError, StorageError
from xuibot.core.types import HostCheckResult, ProbeOutcome, SweepReport
from xuibot.utils.time_helpers import utcnow, seconds_to_human

logger = logging.getLogger(__name__)


class HostMonitorService:
    """
    Background loop that probes every host and reconciles `is_active`.
    
    Lifecycle is Stopped -> Running -> Stopped. `start` runs one sweep
    immediately and then one per interval; `stop` waits for the loop, and
    any sweep in flight, to finish before returning.
    """
    
    def __init__(
        self,
        host_repo,
        probe,
        notifier,
        check_interval: float = Constants.DEFAULT_CHECK_INTERVAL_SECONDS,
        max_concurrency: int = Constants.MAX_CONCURRENT_PROBES,
    ):
        """
        Args:
            host_repo: HostRepository (list_all, get_by_id, set_active)
            probe: PanelProbe (probe_host)
            notifier: NotificationService (notify_inactive_hosts, notify_reactivated_hosts)
            check_interval: Seconds between sweeps
            max_concurrency: Max probes in flight per sweep
        """
        self.host_repo = host_repo
        self.probe = probe
        self.notifier = notifier
        self.check_interval = check_interval
        self.max_concurrency = max(1, max_concurrency)
        
        self._lock = asyncio.Lock()
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False
        
        self.last_sweep_at = None
        self.last_report: Optional[SweepReport] = None
    
    async def start(self) -> None:
        """
        Start the monitor loop.
        
        Raises:
            MonitorStateError: If already running
        """
        async with self._lock:
            if self._running:
                raise MonitorStateError("Host monitor is already running")
            
            self._stop_event = asyncio.Event()
            self._task = asyncio.create_task(self._run(self._stop_event), name="host-monitor")
            self._running = True
        
        logger.info(f"Host monitor started, interval {seconds_to_human(self.check_interval)}")
    
    async def stop(self) -> None:
        """
        Stop the loop and wait until it has fully exited.
        
        Raises:
            MonitorStateError: If not running
        """
        async with self._lock:
            if not self._running:
                raise MonitorStateError("Host monitor is not running")
            
            task = self._task
            self._stop_event.set()
            try:
                await task
            except asyncio.CancelledError:
                # Re-raise when stop() itself is being cancelled
                if not task.cancelled():
                    raise
                logger.warning("Host monitor loop had already been cancelled")
            finally:
                self._task = None
                self._stop_event = None
                self._running = False
        
        logger.info("Host monitor stopped")
    
    def is_running(self) -> bool:
        return self._running
    
    def get_monitoring_status(self) -> Dict[str, Any]:
        return {
            "is_running": self._running,
            "check_interval": seconds_to_human(self.check_interval),
            "max_concurrency": self.max_concurrency,
            "last_sweep_at": self.last_sweep_at,
            "last_sweep_summary": self.last_report.summary() if self.last_report else None,
        }
    
    async def _run(self, stop_event: asyncio.Event):
        while not stop_event.is_set():
            try:
                await self.check_all_hosts()
            except Exception as e:
                logger.exception(f"Host sweep failed: {e}")
            
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.check_interval)
            except asyncio.TimeoutError:
                pass
    
    async def check_all_hosts(self) -> SweepReport:
        """
        Probe every host, active or not, and report the deltas.
        
        Failing hosts are marked inactive as soon as their probe ends.
        Previously inactive hosts that now pass are marked active after
        all probes have finished. One aggregated notification is sent per
        non-empty group.
        """
        report = SweepReport(started_at=utcnow())
        hosts = await self.host_repo.list_all()
        
        if hosts:
            semaphore = asyncio.Semaphore(self.max_concurrency)
            results = await asyncio.gather(
                *(self._check_host(host, semaphore) for host in hosts)
            )
            report.checked = len(results)
            
            for result in results:
                if not result.success:
                    report.failed.append(result)
                elif not result.was_active:
                    await self._reactivate(result)
                    report.reactivated.append(result)
        
        if report.failed:
            await self.notifier.notify_inactive_hosts(report.failed)
        if report.reactivated:
            await self.notifier.notify_reactivated_hosts(report.reactivated)
        
        self.last_sweep_at = report.started_at
        self.last_report = report
        
        summary = report.summary()
        logger.info(
            f"Host sweep done: checked={summary['checked']} "
            f"failed={summary['failed']} reactivated={summary['reactivated']}"
        )
        return report
    
    async def check_host_now(self, host_id: int) -> HostCheckResult:
        """
        Probe one host on demand, without notifications.
        
        Raises:
            HostNotFoundError: If host does not exist
        """
        host = await self.host_repo.get_by_id(host_id)
        if not host:
            raise HostNotFoundError(f"Host {host_id} not found")
        
        result = await self._check_host(host, asyncio.Semaphore(1))
        if result.success and not result.was_active:
            await self._reactivate(result)
        return result
    
    async def _check_host(self, host, semaphore: asyncio.Semaphore) -> HostCheckResult:
        async with semaphore:
            try:
                outcome = await self.probe.probe_host(host)
            except Exception as e:
                logger.exception(f"Probe of host {host.id} raised: {e}")
                outcome = ProbeOutcome(reachable=False, error=str(e) or type(e).__name__)
        
        result = HostCheckResult(
            host_id=host.id,
            host_name=host.name,
            host_url=host.url,
            success=outcome.reachable,
            was_active=host.is_active,
            checked_at=utcnow(),
            error=outcome.error,
        )
        
        if not result.success:
            logger.warning(f"Host {host.name} is unreachable: {result.error}")
            try:
                await self.host_repo.set_active(host.id, False, error=result.error)
            except StorageError as e:
                logger.error(f"Failed to mark host {host.id} inactive: {e}")
        
        return result
    
    async def _reactivate(self, result: HostCheckResult):
        try:
            await self.host_repo.set_active(result.host_id, True)
            host = await self.host_repo.get_by_id(result.host_id)
        except StorageError as e:
            logger.error(f"Failed to mark host {result.host_id} active: {e}")
            return
        
        if host:
            result.host_name = host.name
            result.was_active = host.is_active
        logger.info(f"Host {result.host_name} is reachable again")
