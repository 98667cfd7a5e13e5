from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing_extensions import *

from graphviz import Digraph

from automaton import (
    Outcome,
    SearchResult,
    draw_edges,
    draw_states,
    new_digraph,
    rejection_outcome,
    render,
    require_state,
)
from log_utils import get_logger

logger = get_logger("turing")

DEFAULT_MAX_STEPS = 100000


class Move(Enum):
    LEFT = "L"
    RIGHT = "R"
    STAY = "S"

    @property
    def delta(self) -> int:
        return {"L": -1, "R": 1, "S": 0}[self.value]

    @classmethod
    def parse(cls, text: str) -> "Move":
        aliases = {
            "l": cls.LEFT,
            "left": cls.LEFT,
            "<": cls.LEFT,
            "r": cls.RIGHT,
            "right": cls.RIGHT,
            ">": cls.RIGHT,
            "s": cls.STAY,
            "stay": cls.STAY,
            "n": cls.STAY,
            "-": cls.STAY,
        }
        try:
            return aliases[text.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown move direction: {text!r}") from None


@dataclass(frozen=True)
class TMTransition:
    """
    (src, read) -> (dst, write, move).

    `read=None` matches a blank cell; `write=None` writes the blank.
    """

    src: str
    read: Optional[str]
    dst: str
    write: Optional[str]
    move: Move = Move.STAY


@dataclass(frozen=True)
class TMConfig:
    state: str
    tape: Tuple[str, ...]
    head: int
    offset: int = 0


def tape_to_string(tape: Sequence[str], head: int) -> str:
    return "".join(f"[{cell}]" if i == head else cell for i, cell in enumerate(tape))


def expand_tape(tape: List[str], head: int, offset: int, blank: str) -> Tuple[int, int]:
    """
    Grow `tape` in place so that `head` indexes a real cell.

    Moving left of cell 0 prepends one blank and shifts the logical origin
    right (`offset` + 1); moving past the end appends one blank. Returns the
    new (head, offset).
    """
    if head < 0:
        tape.insert(0, blank)
        return 0, offset + 1
    if head >= len(tape):
        tape.append(blank)
    return head, offset


class TapeTrace:
    """
    Replays the writes and moves of one run to rebuild its tape snapshots.

    Only accepted runs get a trace, and snapshots are built on request.
    """

    def __init__(self, tape: Sequence[str], blank: str, moves: Sequence[Tuple[str, Move]]):
        self.tape = tuple(tape)
        self.blank = blank
        self.moves = list(moves)

    def snapshot(self, index: int) -> str:
        tape = list(self.tape)
        head, offset = 0, 0
        for written, move in self.moves[: index + 1]:
            tape[head] = written
            head, offset = expand_tape(tape, head + move.delta, offset, self.blank)
        return tape_to_string(tape, head)


@dataclass(frozen=True)
class TMStep:
    src: str
    dst: str
    read: str
    write: str
    move: Move
    head: int
    trace: TapeTrace = field(repr=False, compare=False)
    index: int = field(repr=False, compare=False)

    @property
    def tape(self) -> str:
        """Tape after the step, head cell in brackets."""
        return self.trace.snapshot(self.index)


@dataclass
class TuringMachine:
    """
    Turing machine accepting as soon as it enters a final state.

    Several transitions may match the same (state, symbol); they are tried in
    the order they were added and the search backtracks between them.
    """

    start_state: Optional[str] = None
    blank: str = "_"
    transitions: List[TMTransition] = field(default_factory=list)
    accepting_states: Set[str] = field(default_factory=set)
    name: str = "tm"
    alphabet: List[str] = field(default_factory=list)
    states: List[str] = field(default_factory=list)
    positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)

    kind: ClassVar[str] = "tm"

    def add_state(self, state: str, initial: bool = False, final: bool = False, x: float = 0.0, y: float = 0.0) -> None:
        if state not in self.states:
            self.states.append(state)
        self.positions[state] = (x, y)
        if initial:
            self.start_state = state
        if final:
            self.accepting_states.add(state)

    def add_transition(
        self,
        src: Union[str, TMTransition],
        read: Optional[str] = None,
        dst: Optional[str] = None,
        write: Optional[str] = None,
        move: Union[Move, str] = Move.STAY,
    ) -> None:
        if isinstance(src, TMTransition):
            self.transitions.append(src)
            return
        if dst is None:
            raise ValueError("A TM transition needs a target state")
        if not isinstance(move, Move):
            move = Move.parse(move)
        self.transitions.append(TMTransition(src, read, dst, write, move))

    def add_final_state(self, state: str) -> None:
        self.accepting_states.add(state)

    def clear(self) -> None:
        self.transitions.clear()

    def initial_config(self, word: str) -> TMConfig:
        return TMConfig(self.start_state, tuple(word) or (self.blank,), 0, 0)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def _reads(self, t: TMTransition, symbol: str) -> bool:
        return t.read == symbol or (t.read is None and symbol == self.blank)

    def _matching(self, state: str, symbol: str) -> Iterator[TMTransition]:
        return (t for t in self.transitions if t.src == state and self._reads(t, symbol))

    def accepts(self, word: str, max_steps: int = DEFAULT_MAX_STEPS) -> SearchResult:
        """
        Depth-first backtracking simulation.

        Acceptance is by state only: the run succeeds the moment a final
        state is entered, whatever is left on the tape. A machine that never
        reaches a final state is rejected once `max_steps` configurations
        have been visited.

        All branches share one tape, keyed by logical cell; a branch's write
        and its bounds are undone when the search backs out of it.
        """
        require_state(self.start_state)
        if max_steps < 0:
            raise ValueError(f"max_steps must be >= 0, got {max_steps}")

        initial = self.initial_config(word)
        cells: Dict[int, str] = dict(enumerate(initial.tape))
        lo, hi = 0, len(initial.tape) - 1
        state, pos = initial.state, 0

        remaining = max_steps
        exhausted_steps = False

        frames: List[Iterator[TMTransition]] = []
        undo: List[Tuple[str, int, int, int, Optional[str]]] = []
        path: List[Tuple[str, str, str, str, Move, int]] = []

        while True:
            if remaining <= 0:
                exhausted_steps = True
                if undo:
                    state, pos, lo, hi, previous = undo.pop()
                    self._restore(cells, pos, previous)
                    path.pop()
            else:
                remaining -= 1
                if state in self.accepting_states:
                    logger.debug("tm_accepted", word=word, steps=max_steps - remaining)
                    steps = self._steps(initial.tape, path)
                    return SearchResult(True, Outcome.ACCEPTED_AT_FINAL, steps, max_steps - remaining)
                frames.append(self._matching(state, cells.get(pos, self.blank)))

            while frames:
                t = next(frames[-1], None)
                if t is not None:
                    symbol = cells.get(pos, self.blank)
                    written = self.blank if t.write is None else t.write
                    undo.append((state, pos, lo, hi, cells.get(pos)))
                    cells[pos] = written

                    src, state = state, t.dst
                    pos += t.move.delta
                    lo, hi = min(lo, pos), max(hi, pos)
                    path.append((src, t.dst, symbol, written, t.move, pos - lo))
                    break
                frames.pop()
                if undo:
                    state, pos, lo, hi, previous = undo.pop()
                    self._restore(cells, pos, previous)
                    path.pop()
            else:
                break

        outcome = rejection_outcome(exhausted_steps, False)
        logger.debug("tm_rejected", word=word, outcome=outcome.value, steps=max_steps - remaining)
        return SearchResult(False, outcome, [], max_steps - remaining)

    @staticmethod
    def _restore(cells: Dict[int, str], pos: int, previous: Optional[str]) -> None:
        if previous is None:
            del cells[pos]
        else:
            cells[pos] = previous

    def _steps(self, tape: Sequence[str], path: List[Tuple[str, str, str, str, Move, int]]) -> List[TMStep]:
        trace = TapeTrace(tape, self.blank, [(written, move) for _, _, _, written, move, _ in path])
        return [
            TMStep(src, dst, read, written, move, head, trace, i)
            for i, (src, dst, read, written, move, head) in enumerate(path)
        ]

    # -------------------------------------------------------------------------
    # Visualization
    # -------------------------------------------------------------------------

    def to_graphviz(self, filename: Optional[str] = None, view: bool = False) -> Digraph:
        dot = new_digraph("TM")
        states = set(self.states)
        for t in self.transitions:
            states.update((t.src, t.dst))
        draw_states(dot, states, self.start_state, self.accepting_states)

        labels: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        for t in self.transitions:
            read = self.blank if t.read is None else t.read
            write = self.blank if t.write is None else t.write
            labels[(t.src, t.dst)].append(f"{read} → {write}, {t.move.value}")
        draw_edges(dot, labels, sep="\n")

        return render(dot, filename, view)
