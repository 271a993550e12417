"""
Paginated tile source for the masonry gallery.

Tiles are fetched in batches of `page_size` candidate slots. Every slot is
probed for existence on a worker thread; the UI thread polls the batch and
appends the slots that exist, in slot order. A batch that resolves fewer
than `page_size` tiles marks the source as exhausted for good.
"""

import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

from PySide6.QtCore import QObject, QTimer, Signal

from tilegrid.models.tile_patterns import TileItem, make_tile_item
from tilegrid.utils.flow_log import log_flow
from tilegrid.utils.settings import DEFAULT_SETTINGS

# How often the UI thread checks whether all probes of a batch are done.
POLL_INTERVAL_MS = 25


class PaginationPhase(Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    EXHAUSTED = 'exhausted'


@dataclass(frozen=True)
class PaginationState:
    current_page: int = 0
    phase: PaginationPhase = PaginationPhase.IDLE
    consecutive_failures: int = 0
    retry_at: float = 0.0  # time.time() before which requests are refused

    @property
    def is_loading(self) -> bool:
        return self.phase is PaginationPhase.LOADING

    @property
    def has_more(self) -> bool:
        return self.phase is not PaginationPhase.EXHAUSTED


def begin_batch(state: PaginationState, now: float) -> Optional[PaginationState]:
    """Idle -> Loading. Returns None when the request must be ignored."""
    if state.phase is not PaginationPhase.IDLE:
        return None
    if now < state.retry_at:
        return None
    return replace(state, phase=PaginationPhase.LOADING)


def complete_batch(state: PaginationState, resolved_count: int, page_size: int) -> PaginationState:
    """Loading -> Idle, or Loading -> Exhausted on a short batch."""
    phase = PaginationPhase.IDLE if resolved_count >= page_size else PaginationPhase.EXHAUSTED
    return PaginationState(current_page=state.current_page + 1, phase=phase)


def fail_batch(state: PaginationState, now: float, retry_base_ms: int, retry_max_ms: int) -> PaginationState:
    """Loading -> Idle without advancing; arms an exponential retry delay."""
    failures = state.consecutive_failures + 1
    delay_ms = min(retry_base_ms * (2 ** (failures - 1)), retry_max_ms)
    return replace(state, phase=PaginationPhase.IDLE, consecutive_failures=failures,
                   retry_at=now + delay_ms / 1000.0)


@dataclass
class PendingBatch:
    """Probes of the batch currently in flight."""
    page: int
    start_index: int
    futures: List[Tuple[int, Future]] = field(default_factory=list)  # (index_in_page, future)

    def done(self) -> bool:
        return all(future.done() for _, future in self.futures)


class PaginatedTileModel(QObject):
    """
    Owns the append-only tile sequence and the pagination state machine.

    At most one batch is in flight. The state switches to LOADING before any
    probe is submitted, so a second request in the same turn is a no-op.
    """

    items_appended = Signal(list)  # TileItems of a completed batch (may be empty)
    batch_failed = Signal(int, str)  # (page, error message)

    def __init__(self, probe, page_size: int = DEFAULT_SETTINGS['page_size'],
                 base_unit: int = DEFAULT_SETTINGS['base_unit'],
                 retry_base_ms: int = DEFAULT_SETTINGS['batch_retry_base_ms'],
                 retry_max_ms: int = DEFAULT_SETTINGS['batch_retry_max_ms'],
                 executor=None, schedule: Callable | None = None,
                 max_workers: int = DEFAULT_SETTINGS['probe_workers']):
        super().__init__()
        self.probe = probe
        self.page_size = page_size
        self.base_unit = base_unit
        self.retry_base_ms = retry_base_ms
        self.retry_max_ms = retry_max_ms
        self.state = PaginationState()
        self.items: List[TileItem] = []

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="tile_probe")
        self._schedule = schedule
        self._batch: Optional[PendingBatch] = None
        self._closed = False

    @property
    def is_loading(self) -> bool:
        return self.state.is_loading

    @property
    def has_more(self) -> bool:
        return self.state.has_more

    @property
    def current_page(self) -> int:
        return self.state.current_page

    def _schedule_poll(self):
        if self._schedule is not None:
            self._schedule(POLL_INTERVAL_MS, self.check_batch_completion)
        else:
            QTimer.singleShot(POLL_INTERVAL_MS, self.check_batch_completion)

    def request_next_page(self) -> bool:
        """
        Start fetching the next batch.

        Returns:
            True if a batch was started, False if the request was ignored
            (already loading, exhausted, closed, backing off) or failed.
        """
        if self._closed:
            return False

        now = time.time()
        next_state = begin_batch(self.state, now)
        if next_state is None:
            if self.state.phase is PaginationPhase.IDLE:
                log_flow("PAGINATION", f"Backing off page {self.state.current_page} "
                                       f"for {self.state.retry_at - now:.1f}s",
                         throttle_key="pagination_backoff", every_s=1.0)
            else:
                log_flow("PAGINATION", f"Skipping load: phase={self.state.phase.value}",
                         throttle_key="pagination_skip", every_s=1.0)
            return False
        self.state = next_state

        page = self.state.current_page
        start_index = page * self.page_size
        batch = PendingBatch(page=page, start_index=start_index)
        log_flow("PAGINATION", f"Triggered loads page={page} slots={start_index}.."
                               f"{start_index + self.page_size - 1} items={len(self.items)}")
        try:
            for i in range(self.page_size):
                batch.futures.append((i, self._executor.submit(self.probe.exists, start_index + i)))
        except Exception as e:
            for _, future in batch.futures:
                future.cancel()
            self._fail_batch(page, e)
            return False

        self._batch = batch
        self._schedule_poll()
        return True

    def check_batch_completion(self):
        """Poll the in-flight batch; apply it once every probe is done."""
        batch = self._batch
        if self._closed or batch is None:
            return
        if not batch.done():
            self._schedule_poll()
            return

        self._batch = None
        try:
            new_items = self._collect_items(batch)
        except Exception as e:
            self._fail_batch(batch.page, e)
            return

        self.items.extend(new_items)
        self.state = complete_batch(self.state, len(new_items), self.page_size)
        log_flow("PAGINATION", f"Page {batch.page} loaded: {len(new_items)}/{self.page_size} tiles, "
                               f"total={len(self.items)}", level="INFO")
        if not self.state.has_more:
            log_flow("PAGINATION", f"Source exhausted after page {batch.page} "
                                   f"({len(new_items)} < {self.page_size})", level="INFO")
        self.items_appended.emit(new_items)

    def _collect_items(self, batch: PendingBatch) -> List[TileItem]:
        new_items = []
        for index_in_page, future in batch.futures:
            slot = batch.start_index + index_in_page
            try:
                exists = future.result()
            except Exception as e:
                log_flow("PROBE", f"Error checking slot {slot}, skipping: {e}")
                continue
            if not exists:
                log_flow("PROBE", f"Slot {slot} does not exist, skipping")
                continue
            new_items.append(make_tile_item(
                batch.page, index_in_page, self.page_size, self.base_unit,
                self.probe.source_for(slot)))
        return new_items

    def _fail_batch(self, page: int, error: Exception):
        self.state = fail_batch(self.state, time.time(), self.retry_base_ms, self.retry_max_ms)
        log_flow("PAGINATION", f"Error loading page {page}: {error} "
                               f"(failures={self.state.consecutive_failures})", level="ERROR")
        self.batch_failed.emit(page, str(error))

    def close(self):
        """Drop the in-flight batch; later completion polls are no-ops. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._batch is not None:
            for _, future in self._batch.futures:
                future.cancel()
            self._batch = None
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
