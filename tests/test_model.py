import pytest

from distlab.model import Event, EventKind, Model, Operation


class Register(Model):
    def init(self):
        return 0

    def step(self, state, input, output):
        if input is None:
            return output == state, state
        return True, input


def test_model_without_step_cannot_be_instantiated():
    class Incomplete(Model):
        def init(self):
            return 0

    with pytest.raises(TypeError):
        Incomplete()
    with pytest.raises(TypeError):
        Model()


def test_default_partition_keeps_history_whole():
    history = [Operation(5, 0, None, 1), Operation(None, 2, 5, 3)]
    assert Register().partition(history) == [history]


def test_default_partition_event_keeps_history_whole():
    history = [Event(EventKind.CALL, 5, 0), Event(EventKind.RETURN, None, 0)]
    assert Register().partition_event(history) == [history]


def test_default_equal_uses_value_equality():
    model = Register()
    assert Model.equal(model, "abc", "abc")
    assert not Model.equal(model, "abc", "abd")


def test_subclass_step_and_init():
    model = Register()
    state = model.init()
    write = Operation(input=7, call=0, output=None, finish=1)
    ok, state = model.step(state, write.input, write.output)
    assert ok and state == 7
    good_read = Operation(input=None, call=2, output=7, finish=3)
    bad_read = Operation(input=None, call=4, output=8, finish=5)
    assert model.step(state, good_read.input, good_read.output) == (True, 7)
    assert model.step(state, bad_read.input, bad_read.output) == (False, 7)


def test_operation_fields_roundtrip():
    op = Operation(input="in", call=1, output="out", finish=2)
    assert (op.input, op.call, op.output, op.finish) == ("in", 1, "out", 2)


def test_events_compare_by_fields():
    assert Event(EventKind.CALL, "x", 3) == Event(EventKind.CALL, "x", 3)
    assert not (Event(EventKind.CALL, "x", 3) == Event(EventKind.RETURN, "x", 3))