"""Tests for activesql.core.transaction — scopes, re-entrancy, release."""

from __future__ import annotations

import threading

import pytest

from activesql.core.transaction import TransactionCoordinator


class TestScope:
    def test_commit_on_success(self, recording):
        coordinator = TransactionCoordinator(recording)
        with coordinator.scope() as conn:
            assert conn is recording.conn
            assert coordinator.in_transaction
        assert recording.conn.events == ["begin", "commit"]
        assert (recording.acquired, recording.released) == (1, 1)
        assert not coordinator.in_transaction

    def test_rollback_and_reraise(self, recording):
        coordinator = TransactionCoordinator(recording)
        with pytest.raises(KeyError):
            with coordinator.scope():
                raise KeyError("boom")
        assert recording.conn.events == ["begin", "rollback"]
        assert recording.released == 1

    def test_nested_scope_reuses_connection(self, recording):
        coordinator = TransactionCoordinator(recording)
        with coordinator.scope() as outer:
            with coordinator.scope() as inner:
                assert inner is outer
        assert recording.acquired == 1
        assert recording.conn.events == ["begin", "commit"]

    def test_inner_failure_rolls_back_outer(self, recording):
        coordinator = TransactionCoordinator(recording)
        with pytest.raises(ValueError):
            with coordinator.scope():
                with coordinator.scope():
                    raise ValueError("inner")
        assert recording.conn.events == ["begin", "rollback"]

    def test_commit_failure_rolls_back(self, recording):
        def fail_commit():
            raise RuntimeError("commit lost")

        recording.conn.commit = fail_commit
        coordinator = TransactionCoordinator(recording)
        with pytest.raises(RuntimeError):
            with coordinator.scope():
                pass
        assert recording.conn.events == ["begin", "rollback"]
        assert recording.released == 1

    def test_rollback_failure_keeps_original_error(self, recording):
        def fail_rollback():
            raise RuntimeError("rollback lost")

        recording.conn.rollback = fail_rollback
        coordinator = TransactionCoordinator(recording)
        with pytest.raises(KeyError):
            with coordinator.scope():
                raise KeyError("original")
        assert recording.released == 1

    def test_scope_not_visible_to_other_threads(self, recording):
        coordinator = TransactionCoordinator(recording)
        seen = []
        with coordinator.scope():
            thread = threading.Thread(target=lambda: seen.append(coordinator.current()))
            thread.start()
            thread.join()
        assert seen == [None]

    def test_coordinators_do_not_share_scopes(self, make_recording):
        a = TransactionCoordinator(make_recording())
        b = TransactionCoordinator(make_recording())
        with a.scope():
            assert a.in_transaction
            assert not b.in_transaction
