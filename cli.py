from typing_extensions import *

import click

from automaton import FiniteAutomaton, SearchResult
from io_utils import AnyAutomaton, load_from_file, save_to_file
from log_utils import configure_logging, get_logger
from protocol import serve
from pushdown import PushdownAutomaton
from settings import EngineConfig, Settings, load_settings
from turing import TuringMachine

logger = get_logger("cli")

TYPE_NAMES = {"fa": "Finite automaton", "pda": "PDA", "tm": "Turing machine"}

HELP = """
Commands:
  LOADING:
    load <file>                       - Load automata from file
    save <name> <file>                - Save automaton to file
    list                              - List all loaded automata

  QUERIES:
    show <name>                       - Show automaton info
    test <name> [word]                - Test if word is accepted (no word = empty word)
    trace <name> [word]               - Show the accepting run step by step
    reach <name> [word]               - States reached after the word (finite automata)
    generate <name> [max_len] [limit] - Accepted words up to max_len, optional cycle limit
    graph <name>                      - Visualize automaton

  GENERAL:
    delete <name>                     - Delete item
    clear                             - Clear all
    exit                              - Exit
"""


def _word(parts: List[str], index: int) -> str:
    if len(parts) <= index:
        return ""
    word = parts[index]
    return "" if word in ('""', "ε", "eps") else word


def _query(aut: AnyAutomaton, word: str, engine: EngineConfig) -> SearchResult:
    if isinstance(aut, FiniteAutomaton):
        return aut.run(word)
    return aut.accepts(word, max_steps=engine.max_steps)


def _print_trace(aut: AnyAutomaton, word: str, result: SearchResult) -> None:
    if isinstance(aut, FiniteAutomaton):
        for i, states in enumerate(aut.history(word)):
            consumed = word[:i] or "ε"
            print(f"  {i:>3}  {consumed:<12} {{{', '.join(sorted(states))}}}")
        return

    if not result.accepted:
        return

    if isinstance(aut, PushdownAutomaton):
        print(f"  start  {aut.start_state}  stack={aut.initial_stack_symbol}")
        for i, step in enumerate(result.path, 1):
            consumed = step.consumed or "ε"
            popped = step.popped or "ε"
            pushed = step.pushed or "ε"
            print(
                f"  {i:>4}  {step.src} -> {step.dst}  "
                f"[{consumed}, {popped} → {pushed}]  stack={step.stack or 'ε'}  pos={step.position}"
            )
    elif isinstance(aut, TuringMachine):
        print(f"  start  {aut.start_state}  tape={''.join(aut.initial_config(word).tape)}")
        for i, step in enumerate(result.path, 1):
            print(
                f"  {i:>4}  {step.src} -> {step.dst}  "
                f"[{step.read} → {step.write}, {step.move.value}]  tape={step.tape}  head={step.head}"
            )


def repl(settings: Optional[Settings] = None) -> None:
    """Simple interactive terminal for automaton operations."""
    settings = settings or Settings()
    engine = settings.engine
    automata: Dict[str, AnyAutomaton] = {}

    print("Automaton Simulator Terminal - Type 'help' for commands\n")

    while True:
        try:
            command = input("> ").strip()
            if not command:
                continue

            parts = command.split()
            cmd = parts[0].lower()

            # Exit
            if cmd in ["exit", "quit"]:
                break

            # Help
            elif cmd == "help":
                print(HELP)

            # Load
            elif cmd == "load":
                if len(parts) < 2:
                    print("Usage: load <filename>")
                    continue
                try:
                    loaded = load_from_file(parts[1], engine.blank, engine.initial_stack_symbol)
                    automata.update(loaded)
                    if loaded:
                        print(f"Loaded {len(loaded)} automata: {', '.join(loaded.keys())}")
                    else:
                        print("No items loaded")
                except (OSError, ValueError) as e:
                    print(f"Error: {e}")

            # Save
            elif cmd == "save":
                if len(parts) < 3:
                    print("Usage: save <name> <filename>")
                elif parts[1] not in automata:
                    print(f"Automaton not found: {parts[1]}")
                else:
                    try:
                        save_to_file(automata[parts[1]], parts[2])
                        print(f"Saved: {parts[2]}")
                    except OSError as e:
                        print(f"Error: {e}")

            # List
            elif cmd == "list":
                if automata:
                    print("Automata:")
                    for name, aut in sorted(automata.items()):
                        print(f"  {name}: {TYPE_NAMES.get(aut.kind, 'Unknown')}, {len(aut.states)} states")
                else:
                    print("Nothing loaded")

            # Delete item
            elif cmd == "delete":
                if len(parts) < 2:
                    print("Usage: delete <name>")
                elif parts[1] in automata:
                    del automata[parts[1]]
                    print(f"Deleted: {parts[1]}")
                else:
                    print(f"Not found: {parts[1]}")

            # Clear all
            elif cmd == "clear":
                automata.clear()
                print("Cleared all")

            # Every remaining command needs a loaded automaton
            elif cmd in ["show", "test", "trace", "reach", "generate", "graph"]:
                if len(parts) < 2:
                    print(f"Usage: {cmd} <name> ...")
                    continue
                if parts[1] not in automata:
                    print(f"Automaton not found: {parts[1]}")
                    continue
                aut = automata[parts[1]]

                if cmd == "show":
                    print(f"\n{parts[1]}: {TYPE_NAMES.get(aut.kind, 'Unknown')}")
                    print(f"  Alphabet: {aut.alphabet}")
                    print(f"  States: {len(aut.states)}")
                    print(f"  Start: {aut.start_state}")
                    print(f"  Accepting: {sorted(aut.accepting_states)}")
                    if isinstance(aut, FiniteAutomaton):
                        print(f"  Transitions: {len(aut.relation)}\n")
                    else:
                        print(f"  Transitions: {len(aut.transitions)}\n")

                elif cmd in ["test", "trace"]:
                    word = _word(parts, 2)
                    try:
                        result = _query(aut, word, engine)
                    except ValueError as e:
                        print(f"Error: {e}")
                        continue
                    print("ACCEPTED" if result.accepted else f"REJECTED ({result.outcome.message})")
                    if cmd == "trace":
                        _print_trace(aut, word, result)

                elif cmd == "reach":
                    if not isinstance(aut, FiniteAutomaton):
                        print("reach is only valid for finite automata")
                        continue
                    try:
                        reached = aut.reachable(_word(parts, 2))
                    except ValueError as e:
                        print(f"Error: {e}")
                        continue
                    print("{" + ", ".join(sorted(reached)) + "}")

                elif cmd == "generate":
                    if not isinstance(aut, FiniteAutomaton):
                        print("generate is only valid for finite automata")
                        continue
                    try:
                        max_length = int(parts[2]) if len(parts) > 2 else engine.max_length
                        cycle_limit = int(parts[3]) if len(parts) > 3 else engine.cycle_limit
                        words = aut.generate(max_length, cycle_limit=cycle_limit)
                    except ValueError as e:
                        print(f"Error: {e}")
                        continue
                    if words:
                        print(", ".join(w if w else "ε" for w in words))
                    else:
                        print("No accepted words")

                elif cmd == "graph":
                    try:
                        aut.to_graphviz(filename=parts[1], view=True)
                        print(f"Created: {parts[1]}.png")
                    except Exception as e:
                        logger.warning("render_failed", name=parts[1], error=str(e))
                        print(f"Error: {e}")

            else:
                print(f"Unknown command: {cmd}")

        except KeyboardInterrupt:
            print("\nUse 'exit' to quit")
        except EOFError:
            break

    print("Goodbye!")


@click.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None, help="YAML settings file")
@click.option("--json", "json_mode", is_flag=True, help="Serve the JSON-lines protocol on stdin/stdout")
@click.option("--log-level", default=None, help="Override the configured log level")
def main(config_path: Optional[str], json_mode: bool, log_level: Optional[str]) -> None:
    """Automaton simulator: interactive terminal or JSON-lines protocol."""
    try:
        settings = load_settings(config_path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    configure_logging(log_level or settings.logging.level, settings.logging.format)

    if json_mode:
        serve(engine=settings.engine)
    else:
        repl(settings)


if __name__ == "__main__":
    main()
