import pytest

from automaton import TransitionRelation
from log_utils import configure_logging


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    configure_logging("warning")


@pytest.fixture
def dfa():
    # accepts only "ab"
    return TransitionRelation([("q0", "a", "q1"), ("q1", "b", "q2")])


@pytest.fixture
def nfa():
    # a+b
    return TransitionRelation([("q0", "a", "q0"), ("q0", "a", "q1"), ("q1", "b", "q2")])


@pytest.fixture
def cycle_automaton():
    # words over {0,1} ending in 1
    return TransitionRelation([("S", "0", "S"), ("S", "1", "A"), ("A", "0", "S"), ("A", "1", "A")])
