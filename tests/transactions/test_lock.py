"""Tests for the admission-counted transaction lock."""

import asyncio
import logging

import pytest

from dbhooks.exceptions import TransactionError
from dbhooks.transactions.lock import Lock, SynchronousLock
from dbhooks.transactions.transaction import Transaction, run_transaction


def tracked_work(events, running, name):
    """Build a call recording start/end events and peak concurrency."""

    async def work():
        running["now"] += 1
        running["peak"] = max(running["peak"], running["now"])
        events.append(f"start {name}")
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        events.append(f"end {name}")
        running["now"] -= 1
        return name

    return work


class TestLock:
    """Test the lazily created async mutex."""

    @pytest.mark.asyncio
    async def test_context_manager(self):
        lock = Lock()
        assert not lock.locked()

        async with lock:
            assert lock.locked()
        assert not lock.locked()


class TestAdmission:
    """Test admission, queueing and release."""

    @pytest.mark.asyncio
    async def test_single_admission_runs_in_submission_order(self):
        lock = SynchronousLock(1)
        events, running = [], {"now": 0, "peak": 0}

        results = await asyncio.gather(
            *(
                run_transaction(lock, Transaction("Test", name), tracked_work(events, running, name))
                for name in ("a", "b", "c")
            )
        )

        assert results == ["a", "b", "c"]
        assert events == ["start a", "end a", "start b", "end b", "start c", "end c"]
        assert running["peak"] == 1

    @pytest.mark.asyncio
    async def test_counter_bounds_concurrency(self):
        lock = SynchronousLock(2)
        events, running = [], {"now": 0, "peak": 0}

        await asyncio.gather(
            *(
                run_transaction(lock, Transaction("Test", name), tracked_work(events, running, name))
                for name in ("a", "b", "c", "d")
            )
        )

        assert running["peak"] == 2
        assert len(events) == 8

    @pytest.mark.asyncio
    async def test_release_restores_counter(self):
        lock = SynchronousLock(1)
        events, running = [], {"now": 0, "peak": 0}

        await asyncio.gather(
            run_transaction(lock, Transaction("Test", "a"), tracked_work(events, running, "a")),
            run_transaction(lock, Transaction("Test", "b"), tracked_work(events, running, "b")),
        )

        assert lock.admission_counter == 1
        assert lock.pending_count == 0
        assert lock.current_transaction is None

    @pytest.mark.asyncio
    async def test_queued_transaction_waits_for_release(self):
        lock = SynchronousLock(1)
        started = asyncio.Event()
        finish = asyncio.Event()

        async def blocking():
            started.set()
            await finish.wait()
            return "first"

        first = asyncio.ensure_future(run_transaction(lock, Transaction("Test", "first"), blocking))
        await started.wait()

        second = asyncio.ensure_future(
            run_transaction(lock, Transaction("Test", "second"), lambda: "second")
        )
        await asyncio.sleep(0)
        assert lock.pending_count == 1
        assert lock.admission_counter == 0
        assert not second.done()

        finish.set()
        assert await first == "first"
        assert await second == "second"
        assert lock.admission_counter == 1

    @pytest.mark.asyncio
    async def test_error_is_propagated_and_lock_released(self):
        lock = SynchronousLock(1)

        def failing():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await run_transaction(lock, Transaction("Test", "fail"), failing)

        assert await run_transaction(lock, Transaction("Test", "next"), lambda: "ok") == "ok"
        assert lock.admission_counter == 1

    @pytest.mark.asyncio
    async def test_submit_without_action(self):
        with pytest.raises(TransactionError):
            await SynchronousLock(1).submit(Transaction("Test", "empty"))

    def test_counter_must_be_positive(self):
        with pytest.raises(ValueError):
            SynchronousLock(0)

    @pytest.mark.asyncio
    async def test_release_without_transaction_is_logged(self, caplog):
        lock = SynchronousLock(1)

        with caplog.at_level(logging.WARNING, logger="dbhooks.transactions.lock"):
            await lock.release()

        assert "without a running transaction" in caplog.text
        assert lock.admission_counter == 1

    @pytest.mark.asyncio
    async def test_second_release_is_ignored(self, caplog):
        ended = []

        async def on_end(error):
            ended.append(error)

        lock = SynchronousLock(1, on_end=on_end)
        transaction = Transaction("Test", "twice")
        await run_transaction(lock, transaction, lambda: "done")

        with caplog.at_level(logging.WARNING, logger="dbhooks.transactions.lock"):
            await lock.release(None, transaction)

        assert "which is not running" in caplog.text
        assert ended == [None]
        assert lock.admission_counter == 1

    @pytest.mark.asyncio
    async def test_early_release_inside_action_keeps_one_slot(self):
        lock = SynchronousLock(1)
        Transaction.set_lock(lock)

        async def work():
            await Transaction.release()
            return "released"

        assert await run_transaction(lock, Transaction("Test", "early"), work) == "released"
        assert lock.admission_counter == 1
        assert await run_transaction(lock, Transaction("Test", "after"), lambda: "ok") == "ok"
        assert lock.admission_counter == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_is_skipped(self):
        lock = SynchronousLock(1)
        started = asyncio.Event()
        finish = asyncio.Event()
        ran = []

        async def blocking():
            started.set()
            await finish.wait()

        first = asyncio.ensure_future(run_transaction(lock, Transaction("Test", "first"), blocking))
        await started.wait()
        second = asyncio.ensure_future(
            run_transaction(lock, Transaction("Test", "second"), lambda: ran.append("second"))
        )
        await asyncio.sleep(0)
        assert lock.pending_count == 1

        second.cancel()
        finish.set()
        await first
        for _ in range(5):
            await asyncio.sleep(0)

        assert second.cancelled()
        assert ran == []
        assert lock.admission_counter == 1
        assert lock.pending_count == 0
        assert await run_transaction(lock, Transaction("Test", "third"), lambda: "third") == "third"


class TestContinuation:
    """Test inline continuation of a running transaction."""

    @pytest.mark.asyncio
    async def test_active_transaction_continues_without_admission(self):
        lock = SynchronousLock(1)
        transaction = Transaction("Test", "outer")
        observed = {}

        async def outer():
            assert lock.is_active(transaction)
            assert lock.current_transaction is transaction

            async def nested():
                observed["counter"] = lock.admission_counter
                observed["pending"] = lock.pending_count

            transaction.action = nested
            await lock.submit(transaction)
            return "done"

        assert await run_transaction(lock, transaction, outer) == "done"
        assert observed == {"counter": 0, "pending": 0}
        assert not lock.is_active(transaction)


class TestHooks:
    """Test begin/end hooks."""

    @pytest.mark.asyncio
    async def test_hooks_wrap_each_transaction(self):
        calls = []

        async def on_begin():
            calls.append("begin")

        async def on_end(error):
            calls.append(("end", type(error).__name__ if error else None))

        lock = SynchronousLock(1, on_begin=on_begin, on_end=on_end)

        async def work():
            calls.append("work")

        def failing():
            raise ValueError("bad")

        await run_transaction(lock, Transaction("Test", "ok"), work)
        with pytest.raises(ValueError):
            await run_transaction(lock, Transaction("Test", "fail"), failing)

        assert calls == [
            "begin",
            "work",
            ("end", None),
            "begin",
            ("end", "ValueError"),
        ]

    @pytest.mark.asyncio
    async def test_failing_hooks_are_logged_not_raised(self, caplog):
        async def on_begin():
            raise RuntimeError("begin failed")

        async def on_end(error):
            raise RuntimeError("end failed")

        lock = SynchronousLock(1, on_begin=on_begin, on_end=on_end)

        with caplog.at_level(logging.ERROR, logger="dbhooks.transactions.lock"):
            result = await run_transaction(lock, Transaction("Test", "ok"), lambda: "ok")

        assert result == "ok"
        assert "begin failed" in caplog.text
        assert "end failed" in caplog.text
        assert lock.admission_counter == 1
