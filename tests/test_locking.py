"""Tests for the per-loan lock registry."""

import gc
import threading

from loan_engine.locking import LoanLockRegistry

from conftest import make_terms


class TestLoanLockRegistry:

    def test_same_loan_shares_a_lock_while_held(self):
        registry = LoanLockRegistry()
        with registry.hold("loan-1"):
            assert registry.lock_for("loan-1") is registry.lock_for("loan-1")
            assert registry.lock_for("loan-1") is not registry.lock_for("loan-2")

    def test_hold_is_reentrant(self):
        registry = LoanLockRegistry()
        with registry.hold("loan-1"):
            with registry.hold("loan-1"):
                pass

    def test_hold_blocks_other_threads_on_same_loan(self):
        registry = LoanLockRegistry()
        acquired = []

        with registry.hold("loan-1"):
            worker = threading.Thread(
                target=lambda: acquired.append(registry.lock_for("loan-1").acquire(blocking=False))
            )
            worker.start()
            worker.join()

        assert acquired == [False]

    def test_released_locks_are_forgotten(self):
        registry = LoanLockRegistry()
        for n in range(100):
            with registry.hold(f"loan-{n}"):
                pass
        gc.collect()
        assert len(registry) == 0

    def test_engine_does_not_retain_locks(self, system):
        loan, _ = system.loan_manager.create_loan(make_terms())
        system.loan_manager.get_schedule(loan.id)
        system.loan_manager.delete_loan(loan.id)
        gc.collect()
        assert len(system.locks) == 0
