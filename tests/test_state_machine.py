"""Lifecycle state machine transitions."""
import unittest

from app.services.lifecycle_state import (
    InvalidTransition,
    LifecycleState,
    LifecycleStateMachine,
    ServiceStatus,
)


class LifecycleStateMachineTests(unittest.TestCase):
    def setUp(self):
        self.machine = LifecycleStateMachine()

    def test_start_then_settle(self):
        self.assertEqual(self.machine.request_start(), LifecycleState.STARTING)
        self.assertTrue(self.machine.state.in_flight)
        self.assertEqual(self.machine.settle(ServiceStatus.RUNNING), LifecycleState.RUNNING)

    def test_failed_start_settles_stopped(self):
        self.machine.request_start()
        self.assertEqual(self.machine.settle(ServiceStatus.STOPPED), LifecycleState.STOPPED)

    def test_no_second_command_while_in_flight(self):
        self.machine.request_start()
        with self.assertRaises(InvalidTransition):
            self.machine.request_stop()
        with self.assertRaises(InvalidTransition):
            self.machine.request_start()

    def test_settle_requires_transient_state(self):
        with self.assertRaises(InvalidTransition):
            self.machine.settle(ServiceStatus.RUNNING)

    def test_reconcile_ignored_in_flight(self):
        self.machine.request_stop()
        self.assertFalse(self.machine.reconcile(ServiceStatus.RUNNING))
        self.assertEqual(self.machine.state, LifecycleState.STOPPING)

    def test_reconcile_applies_when_settled(self):
        self.assertTrue(self.machine.reconcile(ServiceStatus.RUNNING))
        self.assertEqual(self.machine.state, LifecycleState.RUNNING)
        self.assertTrue(self.machine.reconcile(ServiceStatus.STOPPED))
        self.assertEqual(self.machine.state, LifecycleState.STOPPED)


if __name__ == "__main__":
    unittest.main()
