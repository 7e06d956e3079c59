# tests/test_task_ledger.py

from __future__ import annotations

import pytest

from prioqueue.tasks.errors import ClaimConflictError, IllegalTransitionError, TaskNotFoundError
from prioqueue.tasks.task_ledger import TaskLedger
from prioqueue.tasks.task_models import TaskStatus
from prioqueue.tasks.task_store import TaskStore


@pytest.fixture()
def ledger(store: TaskStore) -> TaskLedger:
    return TaskLedger(store)


def test_claim_moves_pending_to_processing(store: TaskStore, ledger: TaskLedger) -> None:
    task_id = store.add_task(name="t")
    ledger.claim(task_id)
    task = store.get_task(task_id)
    assert task.status == TaskStatus.PROCESSING
    assert task.started_at is not None


def test_claim_conflict_is_raised(store: TaskStore, ledger: TaskLedger) -> None:
    task_id = store.add_task(name="t")
    ledger.claim(task_id)
    with pytest.raises(ClaimConflictError, match="processing"):
        ledger.claim(task_id)


def test_claim_unknown_task(ledger: TaskLedger) -> None:
    with pytest.raises(TaskNotFoundError):
        ledger.claim(404)


def test_record_success_is_idempotent(store: TaskStore, ledger: TaskLedger) -> None:
    task_id = store.add_task(name="t")
    ledger.claim(task_id)
    assert ledger.record_success(task_id) is True
    completed_at = store.get_task(task_id).completed_at

    assert ledger.record_success(task_id) is False
    task = store.get_task(task_id)
    assert task.status == TaskStatus.COMPLETED
    assert task.completed_at == completed_at


def test_record_success_on_failed_task_is_illegal(store: TaskStore, ledger: TaskLedger) -> None:
    task_id = store.add_task(name="t")
    ledger.exhaust_retries(task_id, "x")
    with pytest.raises(IllegalTransitionError):
        ledger.record_success(task_id)


def test_record_failure_requeues_with_message(store: TaskStore, ledger: TaskLedger) -> None:
    task_id = store.add_task(name="t", max_retries=3)
    ledger.claim(task_id)
    assert ledger.record_failure(task_id, "disk full") == 1

    task = store.get_task(task_id)
    assert task.status == TaskStatus.PENDING
    assert task.retry_count == 1
    assert task.error_message == "disk full"
    assert not ledger.should_exhaust(task, 1)


def test_exhaust_after_last_failure(store: TaskStore, ledger: TaskLedger) -> None:
    task_id = store.add_task(name="t", max_retries=1)
    ledger.claim(task_id)
    count = ledger.record_failure(task_id, "last")
    task = store.get_task(task_id)
    assert ledger.should_exhaust(task, count)

    ledger.exhaust_retries(task_id, "last")
    task = store.get_task(task_id)
    assert task.status == TaskStatus.FAILED
    assert task.error_message == "last"
    assert task.retry_count == 1


def test_terminal_tasks_do_not_transition(store: TaskStore, ledger: TaskLedger) -> None:
    done = store.add_task(name="t")
    ledger.claim(done)
    ledger.record_success(done)

    failed = store.add_task(name="t")
    ledger.exhaust_retries(failed, "x")

    with pytest.raises(IllegalTransitionError):
        ledger.record_failure(done, "late")
    with pytest.raises(IllegalTransitionError):
        ledger.exhaust_retries(done, "late")
    with pytest.raises(IllegalTransitionError):
        ledger.record_failure(failed, "late")
    with pytest.raises(IllegalTransitionError):
        ledger.exhaust_retries(failed, "late")
    with pytest.raises(ClaimConflictError):
        ledger.claim(failed)

    assert store.get_task(done).status == TaskStatus.COMPLETED
    assert store.get_task(failed).retry_count == 0


def test_requeue_orphans(store: TaskStore, ledger: TaskLedger) -> None:
    a = store.add_task(name="t")
    b = store.add_task(name="t")
    ledger.claim(a)
    ledger.record_failure(a, "old error")
    ledger.claim(a)
    ledger.claim(b)

    assert ledger.requeue_orphans() == 2

    task_a = store.get_task(a)
    assert task_a.status == TaskStatus.PENDING
    assert task_a.retry_count == 1
    assert task_a.error_message == "old error"
    assert store.get_task(b).status == TaskStatus.PENDING
    assert ledger.requeue_orphans() == 0


def test_finalize_exhausted_fails_stranded_tasks(store: TaskStore, ledger: TaskLedger) -> None:
    stranded = store.add_task(name="t", max_retries=2)
    for message in ("first", "second"):
        ledger.claim(stranded)
        ledger.record_failure(stranded, message)
    # record_failure landed but the failed status was never written.
    assert store.get_task(stranded).status == TaskStatus.PENDING

    retryable = store.add_task(name="t", max_retries=2)
    ledger.claim(retryable)
    ledger.record_failure(retryable, "once")
    never_run = store.add_task(name="t", max_retries=0)

    assert ledger.finalize_exhausted() == 1

    task = store.get_task(stranded)
    assert task.status == TaskStatus.FAILED
    assert task.error_message == "second"
    assert task.retry_count == 2
    assert store.get_task(retryable).status == TaskStatus.PENDING
    assert store.get_task(never_run).status == TaskStatus.PENDING
    assert ledger.finalize_exhausted() == 0
