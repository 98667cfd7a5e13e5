import os
from typing_extensions import *

from automaton import FiniteAutomaton
from log_utils import get_logger
from pushdown import PushdownAutomaton
from turing import Move, TuringMachine

logger = get_logger("io")

AnyAutomaton = Union[FiniteAutomaton, PushdownAutomaton, TuringMachine]

EPSILON_TOKENS = {"", "eps", "epsilon", "ε", "λ"}
TRUE_TOKENS = {"1", "true", "yes", "y"}
FALSE_TOKENS = {"0", "false", "no", "n"}
SEPARATORS = {"|", ";"}
KINDS = {
    "fa": "fa",
    "dfa": "fa",
    "nfa": "fa",
    "pda": "pda",
    "pushdown": "pda",
    "tm": "tm",
    "turing": "tm",
}


class FormatError(ValueError):
    """A line of an automaton file could not be understood."""

    def __init__(self, message: str, line: Optional[int] = None):
        super().__init__(f"line {line}: {message}" if line is not None else message)
        self.line = line


def parse_alphabet(text: str) -> List[str]:
    """
    Parse an alphabet written as "(a,b,c)".

    Each symbol is a single character (surrounding spaces are ignored),
    symbols may not repeat and the alphabet may not be empty.
    """
    text = text.strip()
    if len(text) < 2 or text[0] != "(" or text[-1] != ")":
        raise ValueError("The alphabet must be enclosed in parentheses ( )")

    inner = text[1:-1]
    if not inner.strip():
        raise ValueError("The alphabet cannot be empty")

    symbols: List[str] = []
    for raw in inner.split(","):
        symbol = raw.strip()
        if len(symbol) != 1:
            raise ValueError(f"Each symbol must be a single character, got {raw!r}")
        if symbol in symbols:
            raise ValueError(f"Duplicate symbol in alphabet: {symbol!r}")
        symbols.append(symbol)
    return symbols


def format_alphabet(symbols: Iterable[str]) -> str:
    return "(" + ",".join(symbols) + ")"


def _parse_bool(text: str, line: int) -> bool:
    value = text.strip().lower()
    if value in TRUE_TOKENS:
        return True
    if value in FALSE_TOKENS:
        return False
    raise FormatError(f"Expected a boolean, got {text!r}", line)


def _epsilon(text: str) -> Optional[str]:
    text = text.strip()
    return None if text.lower() in EPSILON_TOKENS else text


def detect_automaton(content: str) -> bool:
    """True when `content` looks like the sectioned automaton format."""
    lowered = content.lower()
    return "[states]" in lowered or "[transitions]" in lowered


# -----------------------------------------------------------------------------
# Reading
# -----------------------------------------------------------------------------


def _new_automaton(kind: str, header: Dict[str, str], blank: str, initial_stack: str) -> AnyAutomaton:
    if kind == "pda":
        return PushdownAutomaton(initial_stack_symbol=header.get("initial_stack") or initial_stack)
    if kind == "tm":
        return TuringMachine(blank=header.get("blank") or blank)
    return FiniteAutomaton()


def _parse_block(
    block: str,
    first_line: int = 1,
    blank: str = "_",
    initial_stack: str = "Z",
    default_name: Optional[str] = None,
) -> AnyAutomaton:
    """Parse a single automaton block."""
    header: Dict[str, str] = {}
    state_rows: List[Tuple[int, List[str]]] = []
    transition_rows: List[Tuple[int, List[str]]] = []
    section = None

    for offset, raw in enumerate(block.split("\n")):
        lineno = first_line + offset
        line = raw.strip()

        if not line or line.startswith("#"):
            continue
        elif line.lower() == "[states]":
            section = "states"
        elif line.lower() == "[transitions]":
            section = "transitions"
        elif line.startswith("["):
            raise FormatError(f"Unknown section {line}", lineno)
        elif section == "states":
            state_rows.append((lineno, [p.strip() for p in line.split(",")]))
        elif section == "transitions":
            transition_rows.append((lineno, [p.strip() for p in line.split(",")]))
        elif ":" in line:
            key, value = line.split(":", 1)
            header[key.strip().lower()] = value.strip()
        else:
            raise FormatError(f"Unexpected line {line!r}", lineno)

    kind_name = header.get("type", "fa").lower()
    if kind_name not in KINDS:
        raise FormatError(f"Unknown automaton type {kind_name!r}")
    kind = KINDS[kind_name]

    automaton = _new_automaton(kind, header, blank, initial_stack)
    automaton.name = header.get("name") or default_name or automaton.name

    if header.get("alphabet"):
        try:
            automaton.alphabet = parse_alphabet(header["alphabet"])
        except ValueError as e:
            raise FormatError(str(e)) from e

    for lineno, fields in state_rows:
        if len(fields) != 5:
            raise FormatError("State rows need name,x,y,isInitial,isFinal", lineno)
        name, x, y, initial, final = fields
        if not name:
            raise FormatError("State name cannot be empty", lineno)
        try:
            position = (float(x), float(y))
        except ValueError:
            raise FormatError(f"Bad coordinates {x!r},{y!r}", lineno) from None
        automaton.add_state(
            name,
            initial=_parse_bool(initial, lineno),
            final=_parse_bool(final, lineno),
            x=position[0],
            y=position[1],
        )

    for lineno, fields in transition_rows:
        _add_transition_row(automaton, fields, lineno)

    logger.debug(
        "automaton_parsed",
        name=automaton.name,
        kind=automaton.kind,
        states=len(automaton.states),
    )
    return automaton


def _check_states(automaton: AnyAutomaton, lineno: int, *names: str) -> None:
    if not automaton.states:
        return
    for name in names:
        if name not in automaton.states:
            raise FormatError(f"Unknown state {name!r}", lineno)


def _check_symbol(automaton: AnyAutomaton, symbol: Optional[str], lineno: int) -> None:
    if symbol is None:
        return
    if len(symbol) != 1:
        raise FormatError(f"Symbols must be single characters, got {symbol!r}", lineno)
    if automaton.alphabet and symbol not in automaton.alphabet:
        raise FormatError(f"Symbol {symbol!r} is not in the alphabet", lineno)


def _add_transition_row(automaton: AnyAutomaton, fields: List[str], lineno: int) -> None:
    if isinstance(automaton, PushdownAutomaton):
        if len(fields) != 5:
            raise FormatError("PDA transitions need from,to,input,pop,push", lineno)
        src, dst, inp, pop, push = fields
        _check_states(automaton, lineno, src, dst)
        inp = _epsilon(inp)
        _check_symbol(automaton, inp, lineno)
        pop = _epsilon(pop)
        if pop is not None and len(pop) != 1:
            raise FormatError(f"Pop symbol must be a single character, got {pop!r}", lineno)
        automaton.add_transition(src, inp, pop, dst, _epsilon(push) or "")

    elif isinstance(automaton, TuringMachine):
        if len(fields) != 5:
            raise FormatError("TM transitions need from,to,read,write,move", lineno)
        src, dst, read, write, move = fields
        _check_states(automaton, lineno, src, dst)
        try:
            direction = Move.parse(move)
        except ValueError as e:
            raise FormatError(str(e), lineno) from e
        read = None if read in ("", automaton.blank) else read
        write = None if write in ("", automaton.blank) else write
        automaton.add_transition(src, read, dst, write, direction)

    else:
        if len(fields) < 3:
            raise FormatError("Transitions need from,to,symbol-list", lineno)
        src, dst = fields[0], fields[1]
        _check_states(automaton, lineno, src, dst)
        for group in fields[2:]:
            # a lone separator character is the symbol itself
            symbols = [group] if len(group) == 1 else group.replace(";", "|").split("|")
            for symbol in symbols:
                symbol = symbol.strip()
                if not symbol:
                    raise FormatError("Empty transition symbol", lineno)
                _check_symbol(automaton, symbol, lineno)
                automaton.add_transition(src, symbol, dst)


def load_from_string(
    content: str,
    blank: str = "_",
    initial_stack: str = "Z",
    default_name: Optional[str] = None,
) -> List[AnyAutomaton]:
    """
    Parse every `---`-separated automaton block in `content`.

    `blank`, `initial_stack` and `default_name` apply to blocks whose
    header omits them.
    """
    automata = []
    lineno = 1
    for block in content.split("\n---"):
        if block.strip():
            automata.append(_parse_block(block, lineno, blank, initial_stack, default_name))
        lineno += block.count("\n") + 1
    return automata


def load_from_file(filename: str, blank: str = "_", initial_stack: str = "Z") -> Dict[str, AnyAutomaton]:
    """
    Load every automaton stored in `filename`, keyed by name.

    Unnamed automata take the file's base name; repeated names get a
    numeric suffix.
    """
    with open(filename, "r", encoding="utf-8") as f:
        content = f.read()

    if not detect_automaton(content):
        raise FormatError(f"{filename} does not contain an automaton")

    base_name = os.path.basename(filename).rsplit(".", 1)[0]
    automata: Dict[str, AnyAutomaton] = {}

    for idx, automaton in enumerate(load_from_string(content, blank, initial_stack, base_name)):
        key = automaton.name
        suffix = idx
        while key in automata:
            key = f"{automaton.name}{suffix}"
            suffix += 1
        automata[key] = automaton

    logger.info("file_loaded", filename=filename, automata=list(automata))
    return automata


# -----------------------------------------------------------------------------
# Writing
# -----------------------------------------------------------------------------


def _fmt_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def dump(automaton: AnyAutomaton) -> str:
    """Serialize one automaton in the sectioned text format."""
    lines = [f"name: {automaton.name}", f"type: {automaton.kind}"]
    if automaton.alphabet:
        lines.append(f"alphabet: {format_alphabet(automaton.alphabet)}")
    if isinstance(automaton, PushdownAutomaton):
        lines.append(f"initial_stack: {automaton.initial_stack_symbol}")
    if isinstance(automaton, TuringMachine):
        lines.append(f"blank: {automaton.blank}")

    lines.append("[States]")
    for state in automaton.states:
        x, y = automaton.positions.get(state, (0.0, 0.0))
        lines.append(
            ",".join(
                [
                    state,
                    _fmt_number(x),
                    _fmt_number(y),
                    "1" if state == automaton.start_state else "0",
                    "1" if state in automaton.accepting_states else "0",
                ]
            )
        )

    lines.append("[Transitions]")
    if isinstance(automaton, PushdownAutomaton):
        for t in automaton.transitions:
            lines.append(f"{t.src},{t.dst},{t.input or 'ε'},{t.pop or 'ε'},{t.push or 'ε'}")
    elif isinstance(automaton, TuringMachine):
        for t in automaton.transitions:
            read = automaton.blank if t.read is None else t.read
            write = automaton.blank if t.write is None else t.write
            lines.append(f"{t.src},{t.dst},{read},{write},{t.move.value}")
    else:
        grouped: Dict[Tuple[str, str], List[str]] = {}
        for src, symbol, dst in automaton.relation:
            grouped.setdefault((src, dst), []).append(symbol)
        for (src, dst), symbols in grouped.items():
            if "," in symbols:
                raise FormatError("Symbol ',' cannot be written in a transition row")
            plain = [s for s in symbols if s not in SEPARATORS]
            if plain:
                lines.append(f"{src},{dst},{'|'.join(plain)}")
            for symbol in symbols:
                if symbol in SEPARATORS:
                    lines.append(f"{src},{dst},{symbol}")

    return "\n".join(lines) + "\n"


def save_to_file(automata: Union[AnyAutomaton, Iterable[AnyAutomaton]], filename: str) -> None:
    if isinstance(automata, (FiniteAutomaton, PushdownAutomaton, TuringMachine)):
        automata = [automata]
    content = "---\n".join(dump(a) for a in automata)
    with open(filename, "w", encoding="utf-8") as f:
        f.write(content)
    logger.info("file_saved", filename=filename)
