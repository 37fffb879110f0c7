import threading

import pytest

from foldermatch.concurrency import CancellationToken, WorkerBudget, check_cancelled, default_worker_count
from foldermatch.errors import AnalysisCancelled


def test_default_worker_count_is_at_least_one():
    assert default_worker_count() >= 1


def test_cancel_raises_with_reason():
    token = CancellationToken()
    token.raise_if_cancelled()
    token.cancel("stop")
    assert token.is_cancelled
    with pytest.raises(AnalysisCancelled, match="stop"):
        token.raise_if_cancelled()


def test_linked_token_follows_parent_but_not_the_reverse():
    parent = CancellationToken()
    child = CancellationToken.linked(parent, None)
    child.cancel()
    assert not parent.is_cancelled

    other = CancellationToken.linked(parent)
    parent.cancel()
    assert other.is_cancelled
    with pytest.raises(AnalysisCancelled):
        check_cancelled(other)


def test_timeout_cancels():
    token = CancellationToken.linked(None, timeout=0)
    assert token.timed_out
    with pytest.raises(AnalysisCancelled, match="timed out"):
        token.raise_if_cancelled()


def test_check_cancelled_accepts_none():
    check_cancelled(None)


def test_worker_budget_reduce_never_below_one():
    budget = WorkerBudget(2)
    assert budget.reduce() == 1
    assert budget.reduce() == 1
    assert budget.limit == 1


def test_worker_budget_blocks_until_release():
    budget = WorkerBudget(1)
    budget.acquire()
    acquired = threading.Event()

    def worker():
        budget.acquire()
        acquired.set()
        budget.release()

    t = threading.Thread(target=worker)
    t.start()
    assert not acquired.wait(0.2)
    budget.release()
    assert acquired.wait(2)
    t.join(2)


def test_worker_budget_acquire_observes_cancellation():
    budget = WorkerBudget(1)
    budget.acquire()
    token = CancellationToken()
    token.cancel()
    with pytest.raises(AnalysisCancelled):
        budget.acquire(token)
