"""
Line-oriented JSON command protocol.

Each input line is one JSON object with an "action" key; each command gets
exactly one JSON response line:

    {"action": "create_automaton", "initial_state": "q0", "final_states": ["q1"]}
    {"action": "add_transition", "from": "q0", "to": "q1", "symbol": "a"}
    {"action": "accepts", "word": "a"}
"""

import json
import sys
from typing_extensions import *

from automaton import FiniteAutomaton
from log_utils import get_logger
from settings import EngineConfig

logger = get_logger("protocol")


class ProtocolSession:
    """Holds the automaton that successive commands build and query."""

    def __init__(self, engine: Optional[EngineConfig] = None):
        self.engine = engine or EngineConfig()
        self.automaton: Optional[FiniteAutomaton] = None

    def _require_automaton(self) -> FiniteAutomaton:
        if self.automaton is None:
            raise ValueError("No automaton created yet")
        return self.automaton

    def handle(self, command: Dict[str, Any]) -> Dict[str, Any]:
        action = command.get("action")

        if action == "create_automaton":
            final_states = command.get("final_states", [])
            alphabet = command.get("alphabet", [])
            if not isinstance(final_states, list) or not isinstance(alphabet, list):
                raise ValueError("final_states and alphabet must be lists")
            self.automaton = FiniteAutomaton(
                start_state=str(command["initial_state"]),
                accepting_states={str(s) for s in final_states},
                alphabet=[str(s) for s in alphabet],
            )
            return {"status": "success", "message": "Automaton created"}

        elif action == "add_transition":
            symbol = str(command["symbol"])
            if not symbol:
                raise ValueError("symbol cannot be empty")
            self._require_automaton().add_transition(str(command["from"]), symbol[0], str(command["to"]))
            return {"status": "success", "message": "Transition added"}

        elif action == "accepts":
            result = self._require_automaton().run(str(command.get("word", "")))
            return {
                "status": "success",
                "message": result.outcome.message,
                "accepted": result.accepted,
                "outcome": result.outcome.value,
            }

        elif action == "reachable":
            reached = self._require_automaton().reachable(str(command.get("word", "")))
            return {"status": "success", "message": "Reachable states", "states": sorted(reached)}

        elif action == "generate":
            automaton = self._require_automaton()
            cycle_limit = command.get("cycle_limit", self.engine.cycle_limit)
            alphabet = command.get("alphabet")
            if alphabet is not None and not isinstance(alphabet, list):
                raise ValueError("alphabet must be a list")
            words = automaton.generate(
                int(command.get("max_length", self.engine.max_length)),
                cycle_limit=None if cycle_limit is None else int(cycle_limit),
                alphabet=alphabet,
            )
            return {"status": "success", "message": f"{len(words)} words", "words": words}

        elif action == "clear":
            self._require_automaton().clear()
            return {"status": "success", "message": "Transitions cleared"}

        return {"status": "error", "message": "Unknown action"}

    def handle_line(self, line: str) -> Dict[str, Any]:
        """Decode one line and answer it; errors become error responses."""
        try:
            command = json.loads(line)
            if not isinstance(command, dict):
                raise ValueError("Command must be a JSON object")
            return self.handle(command)
        except json.JSONDecodeError as e:
            return {"status": "error", "message": f"Invalid JSON: {e.msg}"}
        except KeyError as e:
            return {"status": "error", "message": f"Missing field: {e.args[0]}"}
        except (TypeError, ValueError) as e:
            return {"status": "error", "message": str(e)}


def serve(stdin: TextIO = None, stdout: TextIO = None, engine: Optional[EngineConfig] = None) -> None:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    session = ProtocolSession(engine)

    for line in stdin:
        if not line.strip():
            continue
        response = session.handle_line(line)
        if response["status"] == "error":
            logger.warning("command_failed", message=response["message"])
        stdout.write(json.dumps(response) + "\n")
        stdout.flush()
