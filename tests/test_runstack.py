import pytest

from mutcounter.runstack import Run, RunLengthStack


def test_first_run_is_on_top():
    stack = RunLengthStack([(3, "M"), (1, "I"), (2, "M")])
    assert stack.peek() == Run(3, "M")
    assert stack.pop_unit() == "M"
    assert stack.runs() == [Run(2, "M"), Run(1, "I"), Run(2, "M")]


def test_pop_unit_drops_exhausted_run():
    stack = RunLengthStack([(1, "D"), (2, "M"), (1, "I")])
    assert stack.pop_unit() == "D"
    assert stack.runs() == [Run(2, "M"), Run(1, "I")]
    assert stack.total_units() == 3


def test_push_merges_with_top():
    stack = RunLengthStack([(3, "M"), (1, "D"), (2, "M")])
    stack.push_unit("M")
    assert stack.runs() == [Run(4, "M"), Run(1, "D"), Run(2, "M")]
    stack.push_run(2, "I")
    assert stack.runs()[0] == Run(2, "I")
    assert len(stack) == 4


def test_adjacent_runs_merge_on_construction():
    stack = RunLengthStack([(1, "M"), (2, "M"), (1, "S")])
    assert len(stack) == 2
    assert stack.runs() == [Run(3, "M"), Run(1, "S")]


def test_pop_until_empty():
    stack = RunLengthStack([(2, "M"), (1, "I")])
    assert stack.has_elements()
    assert [stack.pop_unit() for _ in range(3)] == ["M", "M", "I"]
    assert stack.is_empty()
    assert stack.pop_unit() is None
    assert stack.peek() is None
    assert stack.pop_run() is None


def test_expand_and_reverse():
    stack = RunLengthStack([Run(2, "M"), Run(1, "D"), Run(1, "M")])
    assert stack.expand() == ["M", "M", "D", "M"]
    stack.reverse()
    assert stack.expand() == ["M", "D", "M", "M"]


def test_negative_length_rejected():
    stack = RunLengthStack()
    with pytest.raises(ValueError):
        stack.push_run(-1, "M")


@pytest.mark.parametrize(
    "runs",
    [
        [(3, "M")],
        [(1, "M"), (1, "I"), (1, "M"), (1, "D"), (1, "M")],
        [(2, "M"), (2, "M"), (1, "I"), (1, "I"), (4, "M")],
        [(1, "S"), (5, "M"), (2, "D"), (3, "M"), (1, "I"), (1, "I"), (2, "S")],
        [(1, "A"), (1, "B"), (1, "A"), (1, "B"), (1, "A"), (1, "B")],
    ],
)
def test_push_units_then_pop_units_round_trips(runs):
    source = RunLengthStack(runs)
    units = source.expand()

    stack = RunLengthStack()
    for op in reversed(units):
        stack.push_unit(op)
        held = stack.runs()
        assert all(a.operator != b.operator for a, b in zip(held, held[1:]))
    assert stack.runs() == source.runs()

    popped = []
    while stack.has_elements():
        popped.append(stack.pop_unit())
    assert popped == units
    assert stack.is_empty()
