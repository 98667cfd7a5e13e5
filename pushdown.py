from collections import defaultdict
from dataclasses import dataclass, field
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

logger = get_logger("pushdown")

DEFAULT_MAX_STEPS = 100000


@dataclass(frozen=True)
class PDATransition:
    """
    (src, input, pop) -> (dst, push).

    `input=None` reads nothing (epsilon), `pop=None` pops nothing and
    `push=""` pushes nothing. `push` is pushed so that its last character
    ends up on top of the stack.
    """

    src: str
    input: Optional[str]
    pop: Optional[str]
    dst: str
    push: str = ""


# Linked stack: (top, rest), with () as the empty stack. Successor stacks
# share every cell below the top they change.
Stack = Tuple[Any, ...]


@dataclass(frozen=True)
class PDAStep:
    src: str
    dst: str
    consumed: Optional[str]
    popped: Optional[str]
    pushed: str
    position: int
    stack_node: Stack = field(default=(), repr=False)

    @property
    def stack(self) -> str:
        """Stack after the step, top first."""
        return stack_to_string(self.stack_node)


@dataclass(frozen=True)
class PDAConfig:
    state: str
    position: int
    stack: Stack


def make_stack(symbols: Iterable[str]) -> Stack:
    """Build a stack from symbols listed bottom to top."""
    stack: Stack = ()
    for symbol in symbols:
        stack = (symbol, stack)
    return stack


def stack_to_string(stack: Stack) -> str:
    """Render a stack top first."""
    symbols = []
    while stack:
        symbols.append(stack[0])
        stack = stack[1]
    return "".join(symbols)


def apply_stack(stack: Stack, pop: Optional[str], push: str) -> Optional[Stack]:
    """
    Return the stack after popping `pop` and pushing `push`, or None when
    the pop is impossible. `push` goes on left to right, so its last
    character ends up on top.
    """
    if pop is not None:
        if not stack or stack[0] != pop:
            return None
        stack = stack[1]
    for symbol in push:
        stack = (symbol, stack)
    return stack


@dataclass
class PushdownAutomaton:
    """Pushdown automaton accepting by final state once the input is consumed."""

    start_state: Optional[str] = None
    initial_stack_symbol: str = "Z"
    transitions: List[PDATransition] = field(default_factory=list)
    accepting_states: Set[str] = field(default_factory=set)
    name: str = "pda"
    alphabet: List[str] = field(default_factory=list)
    states: List[str] = field(default_factory=list)
    positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)

    kind: ClassVar[str] = "pda"

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
        src: Union[str, PDATransition],
        input: Optional[str] = None,
        pop: Optional[str] = None,
        dst: Optional[str] = None,
        push: str = "",
    ) -> None:
        if isinstance(src, PDATransition):
            self.transitions.append(src)
            return
        if dst is None:
            raise ValueError("A PDA transition needs a target state")
        self.transitions.append(PDATransition(src, input, pop, dst, push or ""))

    def add_final_state(self, state: str) -> None:
        self.accepting_states.add(state)

    def clear(self) -> None:
        self.transitions.clear()

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def _moves(self, word: str, config: PDAConfig) -> Iterator[Tuple[PDAStep, PDAConfig]]:
        """Applicable moves from `config`, in the order transitions were added."""
        for t in self.transitions:
            if t.src != config.state:
                continue

            if t.input is not None:
                if config.position >= len(word) or word[config.position] != t.input:
                    continue

            new_stack = apply_stack(config.stack, t.pop, t.push)
            if new_stack is None:
                continue

            position = config.position + (0 if t.input is None else 1)
            step = PDAStep(
                src=config.state,
                dst=t.dst,
                consumed=t.input,
                popped=t.pop,
                pushed=t.push,
                stack_node=new_stack,
                position=position,
            )
            yield step, PDAConfig(t.dst, position, new_stack)

    def accepts(self, word: str, max_steps: int = DEFAULT_MAX_STEPS) -> SearchResult:
        """
        Depth-first backtracking search for an accepting run.

        Every configuration visited costs one step of `max_steps`; once the
        budget is spent all remaining branches fail. The first accepting run
        found (in transition order) is returned as the path.
        """
        require_state(self.start_state)
        if max_steps < 0:
            raise ValueError(f"max_steps must be >= 0, got {max_steps}")

        remaining = max_steps
        exhausted_steps = False
        exhausted_input = False

        frames: List[Iterator[Tuple[PDAStep, PDAConfig]]] = []
        path: List[PDAStep] = []
        config = PDAConfig(self.start_state, 0, make_stack(self.initial_stack_symbol))

        while True:
            if remaining <= 0:
                exhausted_steps = True
                if path:
                    path.pop()
            else:
                remaining -= 1
                if config.position == len(word):
                    if config.state in self.accepting_states:
                        logger.debug("pda_accepted", word=word, steps=max_steps - remaining)
                        return SearchResult(True, Outcome.ACCEPTED_AT_FINAL, list(path), max_steps - remaining)
                    exhausted_input = True
                frames.append(self._moves(word, config))

            # Advance to the next untried move, unwinding exhausted frames
            while frames:
                move = next(frames[-1], None)
                if move is not None:
                    step, config = move
                    path.append(step)
                    break
                frames.pop()
                if path:
                    path.pop()
            else:
                break

        outcome = rejection_outcome(exhausted_steps, exhausted_input)
        logger.debug("pda_rejected", word=word, outcome=outcome.value, steps=max_steps - remaining)
        return SearchResult(False, outcome, [], max_steps - remaining)

    # -------------------------------------------------------------------------
    # Visualization
    # -------------------------------------------------------------------------

    def to_graphviz(self, filename: Optional[str] = None, view: bool = False) -> Digraph:
        dot = new_digraph("PDA")
        states = set(self.states)
        for t in self.transitions:
            states.update((t.src, t.dst))
        draw_states(dot, states, self.start_state, self.accepting_states)

        labels: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        for t in self.transitions:
            inp = "ε" if t.input is None else t.input
            pop = "ε" if t.pop is None else t.pop
            push = "ε" if not t.push else t.push
            labels[(t.src, t.dst)].append(f"{inp}, {pop} → {push}")
        draw_edges(dot, labels, sep="\n")

        return render(dot, filename, view)
