"""Unit tests for the transition executor on plain (non-ORM) entities."""

import unittest
from datetime import datetime
from unittest.mock import Mock

from simple_state import (
    AttributeStore,
    Outcome,
    OutcomePublisher,
    StateMachineSpec,
    TransitionError,
    TransitionExecutor,
    UnknownTransition,
)

STATES = ("created", "invited", "enrolled", "suspended", "terminated")


class RecordingSink:
    def __init__(self):
        self.events = []

    def emit(self, name, payload):
        self.events.append((name, payload))

    @property
    def names(self):
        return [name for name, _ in self.events]


class Worker:
    def __init__(self, state, eligible=True):
        self.id = 7
        self.state = state
        self.eligible = eligible
        self.enrolled_at = None
        self.notes = []

    def eligible_for_reactivation(self):
        return self.eligible


def _spec(**reactivate):
    spec = StateMachineSpec("state", STATES, entity_type="worker")
    spec.define("invite", to="invited", from_="created")
    options = {"timestamp": True, "guard": "eligible_for_reactivation"}
    options.update(reactivate)
    spec.define("reactivate", to="enrolled", from_=["suspended", "terminated"], **options)
    return spec


class ExecutorTestCase(unittest.TestCase):

    def setUp(self):
        self.sink = RecordingSink()
        self.executor = TransitionExecutor(AttributeStore(), OutcomePublisher(self.sink))
        self.spec = _spec()


class TestExecuteSuccess(ExecutorTestCase):

    def test_reactivate_sets_state_and_timestamp(self):
        """Should write the target state and its timestamp."""
        worker = Worker("suspended")
        start = datetime.utcnow()

        self.assertIs(self.executor.execute(worker, "reactivate", self.spec), True)

        self.assertEqual(worker.state, "enrolled")
        self.assertIsNotNone(worker.enrolled_at)
        self.assertGreaterEqual(worker.enrolled_at, start)

    def test_reactivate_publishes_single_success(self):
        """Should publish exactly one success with the full payload."""
        worker = Worker("terminated")
        self.executor.execute(worker, "reactivate", self.spec)

        self.assertEqual(self.sink.names, ["worker.reactivate.success"])
        payload = self.sink.events[0][1]
        self.assertIs(payload["record"], worker)
        self.assertEqual(payload["record_id"], 7)
        self.assertEqual(payload["from_state"], "terminated")
        self.assertEqual(payload["to_state"], "enrolled")
        self.assertEqual(payload["event"], "reactivate")
        self.assertIsInstance(payload["timestamp"], datetime)

    def test_no_timestamp_policy_leaves_fields_alone(self):
        """Should write no timestamp when the transition has none."""
        worker = Worker("created")
        self.executor.execute(worker, "invite", self.spec)
        self.assertEqual(worker.state, "invited")
        self.assertFalse(hasattr(worker, "invited_at"))

    def test_explicit_timestamp_field(self):
        """Should write the clock value to an explicitly named timestamp field."""
        spec = StateMachineSpec("state", STATES, entity_type="worker")
        spec.define("suspend", to="suspended", from_="enrolled", timestamp="paused_on")
        worker = Worker("enrolled")
        fixed = datetime(2024, 5, 1, 12, 0)
        executor = TransitionExecutor(AttributeStore(), OutcomePublisher(self.sink), clock=lambda: fixed)

        executor.execute(worker, "suspend", spec)

        self.assertEqual(worker.paused_on, fixed)

    def test_action_runs_after_state_write(self):
        """Should run the action after the new state is written."""
        seen = []
        spec = _spec(action=lambda w: seen.append(w.state))
        worker = Worker("suspended")

        self.executor.execute(worker, "reactivate", spec)

        self.assertEqual(seen, ["enrolled"])

    def test_execute_freezes_spec(self):
        """Should freeze the state machine on first execution."""
        self.executor.execute(Worker("created"), "invite", self.spec)
        self.assertTrue(self.spec.frozen)


class TestExecuteInvalid(ExecutorTestCase):

    def test_guard_false_raises_and_keeps_state(self):
        """Should raise TransitionError and keep state when the guard is false."""
        worker = Worker("suspended", eligible=False)

        with self.assertRaises(TransitionError) as ctx:
            self.executor.execute(worker, "reactivate", self.spec)

        err = ctx.exception
        self.assertEqual(err.from_state, "suspended")
        self.assertEqual(err.to, "enrolled")
        self.assertEqual(err.event, "reactivate")
        self.assertIs(err.record, worker)
        self.assertEqual(worker.state, "suspended")
        self.assertIsNone(worker.enrolled_at)
        self.assertEqual(self.sink.names, ["worker.reactivate.invalid"])

    def test_disallowed_source_skips_guard(self):
        """Should reject a disallowed source state without calling the guard."""
        guard = Mock(return_value=True)
        spec = _spec(guard=guard)
        worker = Worker("created")

        with self.assertRaises(TransitionError) as ctx:
            self.executor.execute(worker, "reactivate", spec)

        self.assertEqual(ctx.exception.from_state, "created")
        guard.assert_not_called()
        self.assertEqual(worker.state, "created")
        self.assertEqual(self.sink.names, ["worker.reactivate.invalid"])

    def test_missing_state_is_invalid(self):
        """Should treat a missing current state as invalid."""
        worker = Worker(None)

        with self.assertRaises(TransitionError) as ctx:
            self.executor.execute(worker, "reactivate", self.spec)

        self.assertIsNone(ctx.exception.from_state)
        self.assertIsNone(worker.state)
        self.assertEqual(self.sink.names, ["worker.reactivate.invalid"])
        self.assertIsNone(self.sink.events[0][1]["from_state"])

    def test_error_message(self):
        """Should describe the record, states and transition in the error message."""
        worker = Worker("created")
        with self.assertRaises(TransitionError) as ctx:
            self.executor.execute(worker, "reactivate", self.spec)
        self.assertEqual(
            str(ctx.exception),
            "Invalid transition: Worker #7 from 'created' -> 'enrolled' on reactivate",
        )

    def test_unknown_transition_is_not_published(self):
        """Should raise UnknownTransition without publishing."""
        with self.assertRaises(UnknownTransition):
            self.executor.execute(Worker("created"), "promote", self.spec)
        self.assertEqual(self.sink.events, [])


class TestExecuteFailed(ExecutorTestCase):

    def test_action_error_rolls_back_and_propagates(self):
        """Should roll back and re-raise the action's exception."""
        boom = RuntimeError("mailer down")

        def action(worker):
            raise boom

        spec = _spec(action=action)
        worker = Worker("suspended")

        with self.assertRaises(RuntimeError) as ctx:
            self.executor.execute(worker, "reactivate", spec)

        self.assertIs(ctx.exception, boom)
        self.assertEqual(worker.state, "suspended")
        self.assertIsNone(worker.enrolled_at)
        self.assertEqual(self.sink.names, ["worker.reactivate.failed"])

    def test_write_error_is_failed(self):
        """Should publish failed when the store write raises."""
        class RejectingStore(AttributeStore):
            def write(self, entity, values):
                raise ValueError("state too long")

        executor = TransitionExecutor(RejectingStore(), OutcomePublisher(self.sink))
        worker = Worker("created")

        with self.assertRaises(ValueError):
            executor.execute(worker, "invite", self.spec)

        self.assertEqual(worker.state, "created")
        self.assertEqual(self.sink.names, ["worker.invite.failed"])

    def test_guard_error_is_failed(self):
        """Should publish failed when the guard raises."""
        spec = _spec(guard=Mock(side_effect=KeyError("profile")))
        worker = Worker("suspended")

        with self.assertRaises(KeyError):
            self.executor.execute(worker, "reactivate", spec)

        self.assertEqual(worker.state, "suspended")
        self.assertEqual(self.sink.names, ["worker.reactivate.failed"])


class TestNamingAndConfiguration(ExecutorTestCase):

    def test_raw_transition_name_kept_in_payload_and_error(self):
        """Should keep the declared name in payload and error, underscoring only the event name."""
        spec = StateMachineSpec("state", STATES, entity_type="worker")
        spec.define("sendInvite", to="invited", from_="created")

        self.executor.execute(Worker("created"), "sendInvite", spec)
        with self.assertRaises(TransitionError) as ctx:
            self.executor.execute(Worker("enrolled"), "sendInvite", spec)

        self.assertEqual(ctx.exception.event, "sendInvite")
        self.assertEqual(self.sink.names, ["worker.send_invite.success", "worker.send_invite.invalid"])
        self.assertEqual([p["event"] for _, p in self.sink.events], ["sendInvite", "sendInvite"])

    def test_misspelled_state_field_surfaces(self):
        """Should raise AttributeError for a state field the entity lacks, not report invalid."""
        spec = StateMachineSpec("status", STATES, entity_type="worker")
        spec.define("invite", to="invited", from_="created")

        with self.assertRaises(AttributeError):
            self.executor.execute(Worker("created"), "invite", spec)
        with self.assertRaises(AttributeError):
            self.executor.can_transition(Worker("created"), "invite", spec)

        self.assertEqual(self.sink.events, [])


class TestPublicationFailure(unittest.TestCase):

    def test_broken_sink_does_not_mask_success(self):
        """Should still return True when the sink raises."""
        sink = Mock()
        sink.emit.side_effect = ConnectionError("collector offline")
        executor = TransitionExecutor(AttributeStore(), OutcomePublisher(sink))
        worker = Worker("suspended")

        with self.assertLogs("simple_state.events", level="WARNING"):
            self.assertTrue(executor.execute(worker, "reactivate", _spec()))

        self.assertEqual(worker.state, "enrolled")
        sink.emit.assert_called_once()

    def test_broken_sink_does_not_mask_transition_error(self):
        """Should still raise TransitionError when the sink raises."""
        sink = Mock()
        sink.emit.side_effect = ConnectionError("collector offline")
        executor = TransitionExecutor(AttributeStore(), OutcomePublisher(sink))

        with self.assertLogs("simple_state.events", level="WARNING"):
            with self.assertRaises(TransitionError):
                executor.execute(Worker("created"), "reactivate", _spec())


class TestCanTransition(ExecutorTestCase):

    def test_true_when_allowed(self):
        """Should allow a transition from a permitted state with a passing guard."""
        self.assertTrue(self.executor.can_transition(Worker("suspended"), "reactivate", self.spec))

    def test_false_cases(self):
        """Should refuse a wrong source, a missing state or a failing guard."""
        self.assertFalse(self.executor.can_transition(Worker("created"), "reactivate", self.spec))
        self.assertFalse(self.executor.can_transition(Worker(None), "reactivate", self.spec))
        self.assertFalse(self.executor.can_transition(Worker("suspended", eligible=False), "reactivate", self.spec))

    def test_side_effect_free(self):
        """Should neither write nor publish when checking."""
        worker = Worker("suspended")
        for _ in range(3):
            self.executor.can_transition(worker, "reactivate", self.spec)
            self.executor.can_transition(worker, "invite", self.spec)

        self.assertEqual(worker.state, "suspended")
        self.assertIsNone(worker.enrolled_at)
        self.assertEqual(self.sink.events, [])

    def test_unknown_name_raises(self):
        """Should raise UnknownTransition for an unregistered name."""
        with self.assertRaises(UnknownTransition):
            self.executor.can_transition(Worker("created"), "promote", self.spec)

    def test_available_transitions(self):
        """Should list only the transitions that would pass."""
        self.assertEqual(self.executor.available_transitions(Worker("created"), self.spec), ["invite"])
        self.assertEqual(self.executor.available_transitions(Worker("terminated"), self.spec), ["reactivate"])
        self.assertEqual(self.executor.available_transitions(Worker("enrolled"), self.spec), [])


class TestOutcomeEnum(unittest.TestCase):

    def test_values(self):
        """Should expose success, failed and invalid."""
        self.assertEqual([o.value for o in Outcome], ["success", "failed", "invalid"])


if __name__ == "__main__":
    unittest.main()
