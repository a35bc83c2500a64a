"""
Tests for `domain/optimistic.py`.
"""

from __future__ import annotations

import pytest

from domain.optimistic import OptimisticState, OptimisticUpdate


def test_successful_run_commits() -> None:
    value = {"stage": "explorando"}
    update: OptimisticUpdate[str] = OptimisticUpdate()

    def apply() -> None:
        value["stage"] = "cotizado"

    ok = update.run("explorando", apply, lambda: None, lambda old: value.update(stage=old))

    assert ok is True
    assert update.state == OptimisticState.COMMITTED
    assert value["stage"] == "cotizado"
    assert update.error is None


def test_failed_persist_restores_snapshot() -> None:
    value = {"stage": "explorando"}
    update: OptimisticUpdate[str] = OptimisticUpdate()
    order = []

    def apply() -> None:
        order.append("apply")
        value["stage"] = "pagado"

    def persist() -> None:
        order.append("persist")
        assert value["stage"] == "pagado"
        raise RuntimeError("timeout")

    ok = update.run("explorando", apply, persist, lambda old: value.update(stage=old))

    assert ok is False
    assert order == ["apply", "persist"]
    assert value["stage"] == "explorando"
    assert update.state == OptimisticState.ROLLED_BACK
    assert update.error == "timeout"


def test_second_begin_while_pending_is_rejected() -> None:
    update: OptimisticUpdate[int] = OptimisticUpdate()
    update.begin(1)
    with pytest.raises(RuntimeError):
        update.begin(2)


def test_commit_or_rollback_require_pending() -> None:
    update: OptimisticUpdate[int] = OptimisticUpdate()
    with pytest.raises(RuntimeError):
        update.commit()
    with pytest.raises(RuntimeError):
        update.rollback()


def test_update_can_be_reused_after_it_settles() -> None:
    update: OptimisticUpdate[int] = OptimisticUpdate()
    update.begin(1)
    assert update.rollback("nope") == 1
    update.begin(2)
    update.commit()
    assert update.state == OptimisticState.COMMITTED
    assert update.snapshot == 2
