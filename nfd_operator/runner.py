"""
The ReconcileRunner is the work queue that drives the ReconcileCoordinator.
Each instance is one queue key: at most one reconcile runs per key while
different keys reconcile in parallel on a bounded pool.
"""

# Standard
from concurrent.futures import ThreadPoolExecutor
from heapq import heappop, heappush
from typing import Dict, List, Optional, Set, Tuple
import datetime
import itertools
import threading
import time

# First Party
import alog

# Local
from . import config
from .client import ObjectClientBase
from .exceptions import NfdOperatorError
from .kinds import ResourceKind
from .reconcile import ReconcileCoordinator, ReconciliationResult

log = alog.use_channel("RUNNER")

# (namespace, name)
InstanceKey = Tuple[str, str]


class ReconcileRunner:  # pylint: disable=too-many-instance-attributes
    """Queue of instance reconciles with requeue timers, exponential backoff
    on errors and a periodic resync of every instance
    """

    def __init__(
        self,
        client: ObjectClientBase,
        coordinator: Optional[ReconcileCoordinator] = None,
        namespace: Optional[str] = None,
        max_workers: Optional[int] = None,
    ):
        """
        Args:
            client:  ObjectClientBase
                The client used to list instances
            coordinator:  Optional[ReconcileCoordinator]
                The coordinator to drive (defaults to one built on the client)
            namespace:  Optional[str]
                Only reconcile instances in this namespace
            max_workers:  Optional[int]
                Size of the reconcile pool (defaults to
                runner.max_concurrent_reconciles)
        """
        self.client = client
        self.coordinator = coordinator or ReconcileCoordinator(client)
        self.namespace = namespace or config.watch_namespace or None
        self.max_workers = int(max_workers or config.runner.max_concurrent_reconciles)

        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="reconcile"
        )
        self._stop_event = threading.Event()
        self._notify = threading.Condition(threading.RLock())
        self._running: Set[InstanceKey] = set()
        self._pending: Set[InstanceKey] = set()
        self._failures: Dict[InstanceKey, int] = {}
        self._timer_heap: List[Tuple[float, int, InstanceKey]] = []
        self._sequence = itertools.count()

    ## Public ##################################################################

    def enqueue(self, namespace: str, name: str):
        """Request a reconcile. A request for a key that is already running is
        coalesced into a single rerun once the running reconcile finishes.
        """
        key = (namespace, name)
        with self._notify:
            if self._stop_event.is_set():
                return
            if key in self._running:
                log.debug3("Reconcile of %s already running. Marking pending", key)
                self._pending.add(key)
                return
            self._running.add(key)
        log.debug2("Submitting reconcile of %s", key)
        self._executor.submit(self._run, key)

    def schedule(self, namespace: str, name: str, delay: datetime.timedelta):
        """Enqueue a reconcile after a delay"""
        due = time.monotonic() + max(delay.total_seconds(), 0)
        with self._notify:
            heappush(self._timer_heap, (due, next(self._sequence), (namespace, name)))
            self._notify.notify_all()

    def resync(self):
        """Enqueue every instance currently in the cluster"""
        try:
            instances = self.client.list(
                ResourceKind.NODE_FEATURE_DISCOVERY, self.namespace
            )
        except NfdOperatorError as err:
            log.warning("Failed to list instances for resync: %s", err)
            return
        log.debug("Resyncing %d instances", len(instances))
        for instance in instances:
            metadata = instance.get("metadata", {})
            self.enqueue(metadata.get("namespace"), metadata.get("name"))

    def backoff_delay(self, failures: int) -> datetime.timedelta:
        """Exponential backoff for the given number of consecutive failures"""
        base = float(config.runner.backoff_base_seconds)
        cap = float(config.runner.backoff_max_seconds)
        return datetime.timedelta(seconds=min(base * 2 ** max(failures - 1, 0), cap))

    def run(self):
        """Run until stop() is called"""
        resync_period = float(config.runner.resync_period_seconds)
        next_resync = time.monotonic()
        while not self._stop_event.is_set():
            now = time.monotonic()
            if now >= next_resync:
                self.resync()
                next_resync = now + resync_period

            for key in self._pop_due(now):
                self.enqueue(*key)

            with self._notify:
                timeout = next_resync - time.monotonic()
                if self._timer_heap:
                    timeout = min(timeout, self._timer_heap[0][0] - time.monotonic())
                if timeout > 0 and not self._stop_event.is_set():
                    self._notify.wait(timeout)

    def run_once(self):
        """Reconcile every instance once and wait for the reconciles to finish.
        Requeue requests are ignored.
        """
        self.resync()
        self.wait_idle()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no reconcile is running or pending"""
        with self._notify:
            return self._notify.wait_for(
                lambda: not self._running and not self._pending, timeout=timeout
            )

    def stop(self):
        """Cancel in-flight waits and shut the pool down"""
        log.info("Stopping reconcile runner")
        self._stop_event.set()
        with self._notify:
            self._notify.notify_all()
        self._executor.shutdown(wait=True)

    ## Implementation Details ##################################################

    def _pop_due(self, now: float) -> List[InstanceKey]:
        due = []
        with self._notify:
            while self._timer_heap and self._timer_heap[0][0] <= now:
                due.append(heappop(self._timer_heap)[2])
        return due

    def _run(self, key: InstanceKey):
        try:
            result = self.coordinator.safe_reconcile(*key, self._stop_event)
            self._handle_result(key, result)
        finally:
            # A coalesced rerun keeps the key marked as running
            with self._notify:
                rerun = key in self._pending and not self._stop_event.is_set()
                self._pending.discard(key)
                if not rerun:
                    self._running.discard(key)
                self._notify.notify_all()
            if rerun:
                log.debug2("Rerunning coalesced reconcile of %s", key)
                self._executor.submit(self._run, key)

    def _handle_result(self, key: InstanceKey, result: ReconciliationResult):
        if result.exception is not None:
            with self._notify:
                failures = self._failures.get(key, 0) + 1
                self._failures[key] = failures
            delay = self.backoff_delay(failures)
            log.debug(
                "Reconcile of %s failed %d times. Retrying in %s", key, failures, delay
            )
            self.schedule(*key, delay)
            return

        with self._notify:
            self._failures.pop(key, None)
        if result.requeue:
            log.debug2("Requeue of %s requested in %s", key, result.requeue_after)
            self.schedule(*key, result.requeue_after)
