from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing_extensions import *

from graphviz import Digraph

from log_utils import get_logger

logger = get_logger("automaton")


# -----------------------------------------------------------------------------
# Search results shared by all engines
# -----------------------------------------------------------------------------


class Outcome(Enum):
    """Which termination condition decided a search."""

    ACCEPTED_AT_FINAL = "accepted_at_final"
    EXHAUSTED_INPUT = "exhausted_input"
    EXHAUSTED_STEPS = "exhausted_steps"
    NO_TRANSITION = "no_transition"

    @property
    def message(self) -> str:
        return {
            Outcome.ACCEPTED_AT_FINAL: "Accepted",
            Outcome.EXHAUSTED_INPUT: "Rejected: ended in non-final state",
            Outcome.EXHAUSTED_STEPS: "Rejected: step limit reached",
            Outcome.NO_TRANSITION: "Rejected: no possible transitions",
        }[self]


@dataclass
class SearchResult:
    """
    Result of one acceptance query.

    `path` holds the step records of one accepting run (PDA/TM) and is empty
    on rejection. Finite automata report no steps; use `state_history` for
    their playback.
    """

    accepted: bool
    outcome: Outcome
    path: List[Any] = field(default_factory=list)
    steps_used: int = 0

    def step(self, index: int) -> Optional[Any]:
        if 0 <= index < len(self.path):
            return self.path[index]
        return None

    def __bool__(self) -> bool:
        return self.accepted


def rejection_outcome(exhausted_steps: bool, exhausted_input: bool) -> Outcome:
    if exhausted_steps:
        return Outcome.EXHAUSTED_STEPS
    if exhausted_input:
        return Outcome.EXHAUSTED_INPUT
    return Outcome.NO_TRANSITION


def require_state(state: Any, what: str = "initial state") -> None:
    if state is None:
        raise ValueError(f"An {what} is required")


# -----------------------------------------------------------------------------
# Transition relation
# -----------------------------------------------------------------------------


class TransitionRelation:
    """
    Multi-valued mapping (state, symbol) -> [states].

    Destinations keep insertion order and are not deduplicated: adding the
    same transition twice stores it twice.
    """

    def __init__(self, transitions: Iterable[Tuple[str, str, str]] = ()):
        self._delta: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        self._order: List[Tuple[str, str, str]] = []
        for src, symbol, dst in transitions:
            self.add_transition(src, symbol, dst)

    def add_transition(self, src: str, symbol: str, dst: str) -> None:
        self._delta[(src, symbol)].append(dst)
        self._order.append((src, symbol, dst))

    def get_next_states(self, src: str, symbol: str) -> List[str]:
        targets = self._delta.get((src, symbol))
        return list(targets) if targets else []

    def clear(self) -> None:
        self._delta.clear()
        self._order.clear()

    def symbols(self) -> List[str]:
        seen: Dict[str, None] = {}
        for _, symbol, _ in self._order:
            seen.setdefault(symbol, None)
        return list(seen)

    def states(self) -> Set[str]:
        result = set()
        for src, _, dst in self._order:
            result.add(src)
            result.add(dst)
        return result

    def __iter__(self) -> Iterator[Tuple[str, str, str]]:
        return iter(list(self._order))

    def __len__(self) -> int:
        return len(self._order)

    def __repr__(self) -> str:
        return f"TransitionRelation({self._order!r})"


# -----------------------------------------------------------------------------
# Finite automaton engine
# -----------------------------------------------------------------------------


def reachable_states(relation: TransitionRelation, initial: str, word: str) -> Set[str]:
    """
    States reachable from `initial` after consuming all of `word`.

    Breadth-first over (state, position) pairs; each pair is visited at most
    once, so cycles cannot stall the search.
    """
    require_state(initial)

    reached: Set[str] = set()
    visited = {(initial, 0)}
    queue = deque([(initial, 0)])

    while queue:
        state, pos = queue.popleft()

        if pos == len(word):
            reached.add(state)
            continue

        for nxt in relation.get_next_states(state, word[pos]):
            key = (nxt, pos + 1)
            if key not in visited:
                visited.add(key)
                queue.append(key)

    return reached


def is_accepted(
    relation: TransitionRelation, initial: str, finals: Iterable[str], word: str
) -> bool:
    return not reachable_states(relation, initial, word).isdisjoint(finals)


def run(
    relation: TransitionRelation, initial: str, finals: Iterable[str], word: str
) -> SearchResult:
    """Like `is_accepted`, but reports why a word was rejected."""
    reached = reachable_states(relation, initial, word)
    if not reached.isdisjoint(finals):
        return SearchResult(True, Outcome.ACCEPTED_AT_FINAL)
    return SearchResult(False, rejection_outcome(False, bool(reached)))


def state_history(relation: TransitionRelation, initial: str, word: str) -> List[FrozenSet[str]]:
    """
    Reached state set after each consumed prefix of `word`.

    Index 0 is {initial}. The list stops early once no state is left.
    """
    require_state(initial)

    current = frozenset({initial})
    history = [current]
    for symbol in word:
        current = frozenset(
            nxt for state in sorted(current) for nxt in relation.get_next_states(state, symbol)
        )
        history.append(current)
        if not current:
            break
    return history


def generate_accepted(
    relation: TransitionRelation,
    initial: str,
    finals: Iterable[str],
    alphabet: Iterable[str],
    max_length: int,
    cycle_limit: Optional[int] = None,
    deduplicate: bool = False,
) -> List[str]:
    """
    Enumerate accepted words of length <= max_length, breadth-first.

    With `cycle_limit`, every branch counts how often it has entered each
    state (the initial state starts at one); entering a state more than
    `cycle_limit` times on the same branch prunes it. Duplicate transitions
    can emit a word more than once unless `deduplicate` is set.
    """
    require_state(initial)
    if max_length < 0:
        raise ValueError(f"max_length must be >= 0, got {max_length}")
    if cycle_limit is not None and cycle_limit < 1:
        raise ValueError(f"cycle_limit must be >= 1, got {cycle_limit}")

    finals = set(finals)
    symbols = list(alphabet)
    accepted: List[str] = []

    if initial in finals:
        accepted.append("")

    visits = {initial: 1} if cycle_limit is not None else None
    queue = deque([(initial, "", visits)])

    while queue:
        state, word, visits = queue.popleft()

        if len(word) >= max_length:
            continue

        for symbol in symbols:
            for nxt in relation.get_next_states(state, symbol):
                new_word = word + symbol
                new_visits = None

                if visits is not None:
                    new_visits = dict(visits)
                    new_visits[nxt] = new_visits.get(nxt, 0) + 1
                    if new_visits[nxt] > cycle_limit:
                        continue

                if nxt in finals:
                    accepted.append(new_word)

                if len(new_word) < max_length:
                    queue.append((nxt, new_word, new_visits))

    logger.debug(
        "generation_finished",
        initial=initial,
        max_length=max_length,
        cycle_limit=cycle_limit,
        found=len(accepted),
    )

    if deduplicate:
        return list(dict.fromkeys(accepted))
    return accepted


# -----------------------------------------------------------------------------
# Graphviz helpers shared by all automaton kinds
# -----------------------------------------------------------------------------


def new_digraph(title: str) -> Digraph:
    return Digraph(
        name=title,
        format="png",
        graph_attr={
            "rankdir": "LR",
            "splines": "true",
            "nodesep": "0.8",
            "ranksep": "1.2",
            "label": title,
            "labelloc": "t",
            "fontsize": "14",
            "fontname": "Arial",
        },
        node_attr={
            "shape": "circle",
            "fontsize": "14",
            "fontname": "Arial",
            "style": "filled",
            "fillcolor": "lightblue",
        },
        edge_attr={"fontsize": "12", "fontname": "Arial", "arrowsize": "0.8"},
    )


def draw_states(dot: Digraph, states: Iterable[str], start: Optional[str], accepting: Iterable[str]) -> None:
    accepting = set(accepting)
    dot.node("__start__", shape="point", width="0.01", style="invis")
    for state in sorted(states):
        if state in accepting:
            dot.node(state, label=state, shape="doublecircle", fillcolor="lightgreen")
        else:
            dot.node(state, label=state)
    if start is not None:
        dot.edge("__start__", start, penwidth="2")


def draw_edges(dot: Digraph, labels: Dict[Tuple[str, str], List[str]], sep: str = ", ") -> None:
    for (src, tgt), parts in labels.items():
        label = sep.join(parts)
        if src == tgt:
            dot.edge(src, tgt, label=label, headport="n", tailport="n")
        else:
            dot.edge(src, tgt, label=label)


def render(dot: Digraph, filename: Optional[str], view: bool) -> Digraph:
    if filename is not None:
        dot.render(filename, view=view, cleanup=True)
    return dot


# -----------------------------------------------------------------------------
# Finite automaton value
# -----------------------------------------------------------------------------


@dataclass
class FiniteAutomaton:
    """
    A finite automaton as assembled by an editor or loaded from a file.

    The engine functions above only read `relation`; nothing here caches
    results between calls.
    """

    name: str = "automaton"
    alphabet: List[str] = field(default_factory=list)
    states: List[str] = field(default_factory=list)
    start_state: Optional[str] = None
    accepting_states: Set[str] = field(default_factory=set)
    relation: TransitionRelation = field(default_factory=TransitionRelation)
    # Editor coordinates, carried so that a load/save cycle keeps the layout
    positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)

    kind: ClassVar[str] = "fa"

    def add_state(self, state: str, initial: bool = False, final: bool = False, x: float = 0.0, y: float = 0.0) -> None:
        if state not in self.states:
            self.states.append(state)
        self.positions[state] = (x, y)
        if initial:
            self.start_state = state
        if final:
            self.accepting_states.add(state)

    def add_transition(self, src: str, symbol: str, dst: str) -> None:
        self.relation.add_transition(src, symbol, dst)

    def add_final_state(self, state: str) -> None:
        self.accepting_states.add(state)

    def clear(self) -> None:
        self.relation.clear()

    def accepts(self, word: str) -> bool:
        return is_accepted(self.relation, self.start_state, self.accepting_states, word)

    def run(self, word: str) -> SearchResult:
        return run(self.relation, self.start_state, self.accepting_states, word)

    def reachable(self, word: str) -> Set[str]:
        return reachable_states(self.relation, self.start_state, word)

    def history(self, word: str) -> List[FrozenSet[str]]:
        return state_history(self.relation, self.start_state, word)

    def generate(
        self,
        max_length: int,
        cycle_limit: Optional[int] = None,
        alphabet: Optional[Iterable[str]] = None,
        deduplicate: bool = False,
    ) -> List[str]:
        symbols = list(alphabet) if alphabet is not None else (self.alphabet or self.relation.symbols())
        return generate_accepted(
            self.relation,
            self.start_state,
            self.accepting_states,
            symbols,
            max_length,
            cycle_limit=cycle_limit,
            deduplicate=deduplicate,
        )

    def is_deterministic(self) -> bool:
        seen = set()
        for src, symbol, _ in self.relation:
            if (src, symbol) in seen:
                return False
            seen.add((src, symbol))
        return True

    def to_graphviz(self, filename: Optional[str] = None, view: bool = False) -> Digraph:
        """Build (and optionally render) a Graphviz diagram."""
        dot = new_digraph("DFA" if self.is_deterministic() else "NFA")
        draw_states(dot, set(self.states) | self.relation.states(), self.start_state, self.accepting_states)

        labels: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        for src, symbol, tgt in self.relation:
            if symbol not in labels[(src, tgt)]:
                labels[(src, tgt)].append(symbol)
        draw_edges(dot, labels)

        return render(dot, filename, view)
