from tilegrid.models import paginated_tile_model as pagination_module
from tilegrid.models.paginated_tile_model import (PaginatedTileModel, PaginationPhase,
                                                  PaginationState, begin_batch, complete_batch,
                                                  fail_batch)
from tilegrid.utils.image_probe import ProbeError


class FakeFuture:
    def __init__(self, *, done=True, result=None, exc=None):
        self._done = done
        self._result = result
        self._exc = exc
        self.cancelled = False

    def done(self):
        return self._done

    def result(self):
        if self._exc is not None:
            raise self._exc
        return self._result

    def cancel(self):
        self.cancelled = True
        return True

    def resolve(self, result=None, exc=None):
        self._done = True
        self._result = result
        self._exc = exc


class ImmediateExecutor:
    """Runs the probe inline and hands back an already-finished future."""

    def __init__(self):
        self.submissions = []
        self.shutdown_calls = []

    def submit(self, fn, *args):
        self.submissions.append(args)
        try:
            return FakeFuture(result=fn(*args))
        except Exception as e:
            return FakeFuture(exc=e)

    def shutdown(self, wait=True, cancel_futures=False):
        self.shutdown_calls.append(wait)


class PendingExecutor:
    """Hands back futures that stay pending until the test resolves them."""

    def __init__(self):
        self.futures = []

    def submit(self, fn, *args):
        future = FakeFuture(done=False)
        self.futures.append((args, future))
        return future


class FailingExecutor:
    def submit(self, fn, *args):
        raise RuntimeError("submit failed")


class FakeProbe:
    def __init__(self, count=1000, missing=(), errors=()):
        self.count = count
        self.missing = set(missing)
        self.errors = set(errors)

    def exists(self, index):
        if index in self.errors:
            raise ProbeError(f"boom {index}")
        return index < self.count and index not in self.missing

    def source_for(self, index):
        return f"/images/{index + 1}.png"


def make_model(probe, executor, page_size=10, **kwargs):
    scheduled = []
    model = PaginatedTileModel(probe, page_size=page_size, base_unit=200, executor=executor,
                               schedule=lambda ms, callback: scheduled.append((ms, callback)),
                               **kwargs)
    appended = []
    model.items_appended.connect(lambda items: appended.append(list(items)))
    return model, scheduled, appended


def test_transition_functions():
    idle = PaginationState()
    loading = begin_batch(idle, now=0.0)
    assert loading.phase is PaginationPhase.LOADING
    assert begin_batch(loading, now=0.0) is None

    assert complete_batch(loading, 10, 10) == PaginationState(current_page=1)
    exhausted = complete_batch(loading, 3, 10)
    assert exhausted.phase is PaginationPhase.EXHAUSTED
    assert exhausted.current_page == 1
    assert begin_batch(exhausted, now=0.0) is None

    failed = fail_batch(loading, now=50.0, retry_base_ms=1000, retry_max_ms=3000)
    assert failed.phase is PaginationPhase.IDLE
    assert failed.current_page == 0
    assert failed.retry_at == 51.0
    assert fail_batch(failed, 50.0, 1000, 3000).retry_at == 52.0
    assert fail_batch(fail_batch(failed, 50.0, 1000, 3000), 50.0, 1000, 3000).retry_at == 53.0


def test_full_batch_appends_and_stays_idle():
    executor = ImmediateExecutor()
    model, scheduled, appended = make_model(FakeProbe(), executor)

    assert model.request_next_page() is True
    assert model.is_loading is True
    assert [args for args in executor.submissions] == [(i,) for i in range(10)]
    assert scheduled[0] == (pagination_module.POLL_INTERVAL_MS, model.check_batch_completion)

    model.check_batch_completion()

    assert model.state == PaginationState(current_page=1, phase=PaginationPhase.IDLE)
    assert [item.id for item in model.items] == [f"0-{i}" for i in range(10)]
    assert model.items[3].src == "/images/4.png"
    assert len(appended) == 1


def test_second_page_probes_following_slots():
    executor = ImmediateExecutor()
    model, _, _ = make_model(FakeProbe(), executor)
    model.request_next_page()
    model.check_batch_completion()

    model.request_next_page()
    model.check_batch_completion()

    assert executor.submissions[10:] == [(i,) for i in range(10, 20)]
    assert model.items[-1].id == "1-9"
    assert model.items[-1].index == 19
    assert model.current_page == 2


def test_missing_slots_are_skipped_and_short_batch_exhausts():
    model, _, appended = make_model(FakeProbe(missing={3, 7}), ImmediateExecutor())

    model.request_next_page()
    model.check_batch_completion()

    assert [item.id for item in model.items] == ["0-0", "0-1", "0-2", "0-4", "0-5", "0-6", "0-8", "0-9"]
    assert model.current_page == 1
    assert model.has_more is False
    assert len(appended[0]) == 8


def test_probe_errors_are_skipped_per_slot():
    model, _, _ = make_model(FakeProbe(errors={0, 5}), ImmediateExecutor())

    model.request_next_page()
    model.check_batch_completion()

    assert len(model.items) == 8
    assert "0-0" not in [item.id for item in model.items]
    assert model.has_more is False


def test_exhaustion_is_permanent():
    executor = ImmediateExecutor()
    model, _, appended = make_model(FakeProbe(count=14), executor)
    for _ in range(2):
        model.request_next_page()
        model.check_batch_completion()

    assert model.has_more is False
    assert model.current_page == 2
    submitted = len(executor.submissions)

    assert model.request_next_page() is False
    assert len(executor.submissions) == submitted
    assert model.has_more is False
    assert [len(batch) for batch in appended] == [10, 4]


def test_empty_final_batch_still_completes():
    model, _, appended = make_model(FakeProbe(count=10), ImmediateExecutor())
    for _ in range(2):
        model.request_next_page()
        model.check_batch_completion()

    assert appended[-1] == []
    assert model.state.phase is PaginationPhase.EXHAUSTED
    assert model.current_page == 2


def test_double_request_in_same_turn_submits_one_batch():
    executor = PendingExecutor()
    model, _, _ = make_model(FakeProbe(), executor)

    assert model.request_next_page() is True
    assert model.request_next_page() is False

    assert len(executor.futures) == 10
    assert model.is_loading is True


def test_pending_batch_keeps_polling_until_done():
    executor = PendingExecutor()
    model, scheduled, appended = make_model(FakeProbe(), executor)
    model.request_next_page()

    executor.futures[0][1].resolve(True)
    model.check_batch_completion()

    assert len(scheduled) == 2
    assert appended == []
    assert model.is_loading is True

    for args, future in executor.futures:
        future.resolve(args[0] != 4)
    model.check_batch_completion()

    assert len(model.items) == 9
    assert model.has_more is False


def test_submit_failure_resets_to_idle_with_backoff(monkeypatch):
    monkeypatch.setattr(pagination_module.time, "time", lambda: 100.0)
    model, scheduled, appended = make_model(FakeProbe(), FailingExecutor(),
                                            retry_base_ms=1000, retry_max_ms=8000)
    failures = []
    model.batch_failed.connect(lambda page, message: failures.append((page, message)))

    assert model.request_next_page() is False

    assert model.state.phase is PaginationPhase.IDLE
    assert model.current_page == 0
    assert model.has_more is True
    assert model.state.consecutive_failures == 1
    assert model.state.retry_at == 101.0
    assert model.items == []
    assert scheduled == []
    assert failures == [(0, "submit failed")]


def test_backoff_blocks_requests_until_retry_time(monkeypatch):
    now = [100.0]
    monkeypatch.setattr(pagination_module.time, "time", lambda: now[0])
    model, _, _ = make_model(FakeProbe(), FailingExecutor(), retry_base_ms=1000)
    model.request_next_page()

    model._executor = ImmediateExecutor()
    now[0] = 100.5
    assert model.request_next_page() is False
    assert model._executor.submissions == []

    now[0] = 101.0
    assert model.request_next_page() is True
    model.check_batch_completion()

    assert model.current_page == 1
    assert model.state.consecutive_failures == 0
    assert model.state.retry_at == 0.0


def test_assembly_failure_does_not_advance_page():
    class BrokenSourceProbe(FakeProbe):
        def source_for(self, index):
            raise RuntimeError("no source")

    model, _, appended = make_model(BrokenSourceProbe(), ImmediateExecutor())

    model.request_next_page()
    model.check_batch_completion()

    assert model.state.phase is PaginationPhase.IDLE
    assert model.current_page == 0
    assert model.items == []
    assert appended == []


def test_close_mid_fetch_ignores_late_results():
    executor = PendingExecutor()
    model, scheduled, appended = make_model(FakeProbe(), executor)
    model.request_next_page()

    model.close()
    for _, future in executor.futures:
        future.resolve(True)
    model.check_batch_completion()

    assert all(future.cancelled for _, future in executor.futures)
    assert model.items == []
    assert appended == []
    assert model.request_next_page() is False
    model.close()  # idempotent


def test_close_does_not_shut_down_injected_executor():
    executor = ImmediateExecutor()
    model, _, _ = make_model(FakeProbe(), executor)

    model.close()

    assert executor.shutdown_calls == []
