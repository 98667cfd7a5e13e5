import time

import pytest

from automaton import Outcome
from turing import (
    DEFAULT_MAX_STEPS,
    Move,
    TapeTrace,
    TMConfig,
    TMTransition,
    TuringMachine,
    expand_tape,
    tape_to_string,
)


@pytest.fixture
def flip():
    tm = TuringMachine(start_state="q0", blank="_")
    tm.add_transition("q0", "0", "q0", "1", Move.RIGHT)
    tm.add_transition("q0", "1", "q0", "0", Move.RIGHT)
    tm.add_transition("q0", None, "qf", None, Move.STAY)
    tm.add_final_state("qf")
    return tm


def test_tape_to_string():
    assert tape_to_string(["a", "b", "_"], 1) == "a[b]_"
    assert tape_to_string(["a"], 0) == "[a]"


def test_expand_tape_left_prepends_one_blank():
    tape = ["a", "b"]
    head, offset = expand_tape(tape, -1, 0, "_")
    assert tape == ["_", "a", "b"]
    assert (head, offset) == (0, 1)


def test_expand_tape_right_appends_one_blank():
    tape = ["a", "b"]
    head, offset = expand_tape(tape, 2, 0, "_")
    assert tape == ["a", "b", "_"]
    assert (head, offset) == (2, 0)


def test_expand_tape_inside_bounds_is_a_no_op():
    tape = ["a", "b"]
    assert expand_tape(tape, 1, 3, "_") == (1, 3)
    assert tape == ["a", "b"]


def test_initial_config():
    tm = TuringMachine(start_state="q0")
    assert tm.initial_config("ab") == TMConfig("q0", ("a", "b"), 0, 0)
    assert tm.initial_config("") == TMConfig("q0", ("_",), 0, 0)


def test_moving_left_of_origin():
    tm = TuringMachine(start_state="q0")
    tm.add_transition("q0", "a", "q1", "a", Move.LEFT)
    tm.add_final_state("q1")

    result = tm.accepts("ab")
    assert result.accepted
    step = result.path[0]
    assert step.tape == "[_]ab"
    assert step.head == 0


def test_moving_right_grows_one_cell_per_step():
    tm = TuringMachine(start_state="q0")
    tm.add_transition("q0", "a", "q1", "a", "R")
    tm.add_transition("q1", "b", "q2", "b", "R")
    tm.add_transition("q2", None, "q3", None, "R")
    tm.add_final_state("q3")

    result = tm.accepts("ab")
    assert [s.tape for s in result.path] == ["a[b]", "ab[_]", "ab_[_]"]
    assert [s.head for s in result.path] == [1, 2, 3]


def test_flip_machine(flip):
    result = flip.accepts("0110")
    assert result.accepted
    assert result.outcome is Outcome.ACCEPTED_AT_FINAL
    assert result.path[-1].tape == "1001[_]"
    assert result.path[-1].dst == "qf"
    assert result.path[0].read == "0"
    assert result.path[0].write == "1"
    assert result.path[0].move is Move.RIGHT
    assert result.steps_used == 6


def test_empty_input_reads_blank(flip):
    result = flip.accepts("")
    assert result.accepted
    assert len(result.path) == 1
    assert result.path[0].read == "_"
    assert result.path[0].tape == "[_]"


def test_acceptance_is_by_state_only():
    tm = TuringMachine(start_state="q0", accepting_states={"q0"})
    result = tm.accepts("abc")
    assert result.accepted
    assert result.path == []


def test_no_matching_transition(flip):
    result = flip.accepts("012")
    assert not result.accepted
    assert result.outcome is Outcome.NO_TRANSITION
    assert result.path == []


def test_endless_machine_exhausts_budget():
    tm = TuringMachine(start_state="q0")
    tm.add_transition("q0", None, "q0", None, Move.RIGHT)
    tm.add_final_state("never")

    result = tm.accepts("", max_steps=300)
    assert result.outcome is Outcome.EXHAUSTED_STEPS
    assert result.steps_used == 300


def test_backtracks_between_matching_transitions():
    tm = TuringMachine(start_state="q0")
    tm.add_transition("q0", "a", "dead", "x", Move.RIGHT)
    tm.add_transition("q0", "a", "qf", "y", Move.STAY)
    tm.add_final_state("qf")

    result = tm.accepts("a")
    assert result.accepted
    assert len(result.path) == 1
    assert result.path[0].dst == "qf"
    assert result.path[0].tape == "[y]"


def test_custom_blank_symbol():
    tm = TuringMachine(start_state="q0", blank="#")
    tm.add_transition("q0", "#", "qf", "1", Move.STAY)
    tm.add_final_state("qf")
    result = tm.accepts("")
    assert result.accepted
    assert result.path[0].tape == "[1]"


def test_move_parse():
    assert Move.parse("L") is Move.LEFT
    assert Move.parse("right") is Move.RIGHT
    assert Move.parse(" s ") is Move.STAY
    with pytest.raises(ValueError):
        Move.parse("up")


def test_preconditions():
    with pytest.raises(ValueError):
        TuringMachine().accepts("a")
    with pytest.raises(ValueError):
        TuringMachine(start_state="q0").accepts("a", max_steps=-5)
    with pytest.raises(ValueError):
        TuringMachine(start_state="q0").add_transition("q0", "a")


def test_transition_objects_and_graphviz(flip):
    tm = TuringMachine(start_state="q0")
    tm.add_transition(TMTransition("q0", "a", "q1", "b", Move.LEFT))
    assert tm.transitions == [TMTransition("q0", "a", "q1", "b", Move.LEFT)]

    source = flip.to_graphviz().source
    assert "0 → 1, R" in source
    assert "_ → _, S" in source


def test_tape_trace_replays_writes_and_moves():
    trace = TapeTrace("ab", "_", [("x", Move.LEFT), ("y", Move.RIGHT), ("z", Move.RIGHT)])
    assert trace.snapshot(0) == "[_]xb"
    assert trace.snapshot(1) == "y[x]b"
    assert trace.snapshot(2) == "yz[b]"


def test_backtracking_restores_the_shared_tape():
    tm = TuringMachine(start_state="q0")
    tm.add_transition("q0", "a", "q1", "x", Move.LEFT)
    tm.add_transition("q1", None, "dead", "y", Move.LEFT)
    tm.add_transition("q0", "a", "q2", "a", Move.RIGHT)
    tm.add_transition("q2", "b", "qf", "b", Move.STAY)
    tm.add_final_state("qf")

    result = tm.accepts("ab")
    assert result.accepted
    assert [s.dst for s in result.path] == ["q2", "qf"]
    assert result.path[-1].tape == "a[b]"
    assert result.path[-1].head == 1


@pytest.mark.parametrize("move", [Move.RIGHT, Move.LEFT])
def test_default_budget_on_a_growing_tape(move):
    tm = TuringMachine(start_state="q0")
    tm.add_transition("q0", None, "q0", None, move)

    started = time.perf_counter()
    result = tm.accepts("")
    elapsed = time.perf_counter() - started

    assert result.outcome is Outcome.EXHAUSTED_STEPS
    assert result.steps_used == DEFAULT_MAX_STEPS
    assert elapsed < 30
