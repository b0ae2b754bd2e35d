# risk_oracle/services/scan_queue.py
"""
FIFO scan queue with admission control and a global rate limiter.

Only one scan runs at a time across the whole process, and two scan starts
are always separated by at least ``min_interval_seconds``. Every mutation of
queue state happens under a single lock, so ``enqueue`` can be called from
the HTTP layer and the on-chain listener at the same time.
"""
import logging
import re
import threading
import time
from dataclasses import dataclass, asdict, replace
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

DEFAULT_COOLDOWN_SECONDS = 24 * 60 * 60
DEFAULT_MIN_INTERVAL_SECONDS = 12.0
DEFAULT_MAX_PENDING = 10
DEFAULT_HISTORY_LIMIT = 50

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def normalize_target(target: str) -> str:
    return (target or "").strip().lower()


def is_valid_address(target: str) -> bool:
    return bool(_ADDRESS_RE.match((target or "").strip()))


@dataclass
class QueueItem:
    target: str
    requested_at: float
    status: str = PENDING
    error: Optional[str] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.status in (PENDING, PROCESSING)

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.status != FAILED:
            data.pop("error")
        return data


@dataclass(frozen=True)
class EnqueueResult:
    accepted: bool
    message: str
    position: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


class ScanQueue:
    """
    Admission-controlled, single-flight scheduler for audit jobs.

    ``processor(target)`` does the actual work on a worker thread; it signals
    failure by raising. The queue never cancels a running job.
    """

    def __init__(
        self,
        processor: Callable[[str], object],
        *,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
        max_pending: int = DEFAULT_MAX_PENDING,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        cooldown_on_failure: bool = False,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._processor = processor
        self.cooldown_seconds = float(cooldown_seconds)
        self.min_interval_seconds = float(min_interval_seconds)
        self.max_pending = int(max_pending)
        self.history_limit = int(history_limit)
        self.cooldown_on_failure = bool(cooldown_on_failure)
        self._clock = clock
        self._monotonic = monotonic

        self._items: List[QueueItem] = []
        self._recent_scans: Dict[str, float] = {}  # target -> last completion
        self._running = False
        self._last_start: Optional[float] = None  # monotonic
        self._timer: Optional[threading.Timer] = None
        self._closed = False

        self._lock = threading.Lock()
        self._settled = threading.Condition(self._lock)

    # ---------------------------
    # Public API
    # ---------------------------

    def enqueue(self, target: str, force: bool = False) -> EnqueueResult:
        if not is_valid_address(target):
            return EnqueueResult(False, "Invalid address format")
        normalized = normalize_target(target)

        with self._lock:
            if not force:
                last = self._recent_scans.get(normalized)
                if last is not None and self._clock() - last < self.cooldown_seconds:
                    return EnqueueResult(
                        False, "Already scanned within the cooldown window. Use force=true to re-scan."
                    )

            existing = self._find_active(normalized)
            if existing is not None:
                result = EnqueueResult(True, "Already in queue", self._position_of(existing))
            else:
                if self._pending_count() >= self.max_pending:
                    return EnqueueResult(False, "Queue is full. Try again later.")
                item = QueueItem(target=normalized, requested_at=self._clock())
                self._items.append(item)
                self._trim_history()
                result = EnqueueResult(True, "Added to queue", self._position_of(item))
                logger.info("Queued scan for %s (position %s)", normalized, result.position)

        self._advance()
        return result

    def get_status(self, target: str) -> Optional[QueueItem]:
        """Copy of the most recent item for `target`; later transitions do not show through."""
        normalized = normalize_target(target)
        with self._lock:
            for item in reversed(self._items):
                if item.target == normalized:
                    return replace(item)
        return None

    def get_queue_state(self) -> Dict[str, int]:
        with self._lock:
            return {
                "pending": self._pending_count(),
                "processing": sum(1 for i in self._items if i.status == PROCESSING),
                "total": len(self._items),
            }

    def mark_scanned(self, target: str, when: Optional[float] = None) -> None:
        with self._lock:
            self._recent_scans[normalize_target(target)] = self._clock() if when is None else when

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is running or pending. Returns False on timeout."""
        with self._settled:
            return self._settled.wait_for(self._is_idle, timeout)

    def shutdown(self) -> None:
        """Stop scheduling new jobs. A running job still settles normally."""
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._settled.notify_all()

    # ---------------------------
    # Scheduler
    # ---------------------------

    def _advance(self) -> None:
        with self._lock:
            item = self._claim_next()
        if item is not None:
            worker = threading.Thread(
                target=self._run, args=(item,), name=f"scan-{item.target[:10]}", daemon=True
            )
            worker.start()

    def _claim_next(self) -> Optional[QueueItem]:
        if self._running or self._closed:
            return None
        nxt = next((i for i in self._items if i.status == PENDING), None)
        if nxt is None:
            return None

        mono = self._monotonic()
        if self._last_start is not None:
            wait = self.min_interval_seconds - (mono - self._last_start)
            if wait > 0:
                self._defer(wait)
                return None

        self._running = True
        self._last_start = mono
        nxt.status = PROCESSING
        nxt.started_at = self._clock()
        return nxt

    def _defer(self, delay: float) -> None:
        if self._timer is not None:
            return
        self._timer = threading.Timer(delay, self._on_timer)
        self._timer.daemon = True
        self._timer.start()

    def _on_timer(self) -> None:
        with self._lock:
            self._timer = None
        self._advance()

    def _run(self, item: QueueItem) -> None:
        logger.info("Scan started for %s", item.target)
        error = None
        try:
            self._processor(item.target)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.exception("Scan failed for %s", item.target)

        with self._lock:
            now = self._clock()
            item.finished_at = now
            if error is None:
                item.status = COMPLETED
                self._recent_scans[item.target] = now
            else:
                item.status = FAILED
                item.error = error
                if self.cooldown_on_failure:
                    self._recent_scans[item.target] = now
            self._running = False
            self._trim_history()
            self._settled.notify_all()
        logger.info("Scan %s for %s", item.status, item.target)

        self._advance()

    # ---------------------------
    # Helpers (lock held)
    # ---------------------------

    def _find_active(self, target: str) -> Optional[QueueItem]:
        return next((i for i in self._items if i.target == target and i.is_active), None)

    def _pending_count(self) -> int:
        return sum(1 for i in self._items if i.status == PENDING)

    def _position_of(self, item: QueueItem) -> int:
        # 0 means "running now"
        if item.status != PENDING:
            return 0
        pending = [i for i in self._items if i.status == PENDING]
        return next(n for n, i in enumerate(pending, 1) if i is item)

    def _trim_history(self) -> None:
        # FIFO execution keeps terminal items ahead of active ones
        if len(self._items) > self.history_limit:
            self._items = self._items[-self.history_limit:]

    def _is_idle(self) -> bool:
        if self._closed:
            return not self._running
        return not self._running and not any(i.status == PENDING for i in self._items)
