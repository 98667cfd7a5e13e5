import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from cli import main
from log_utils import configure_logging

EXAMPLES = Path(__file__).resolve().parent.parent / "examples" / "automata.txt"


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    configure_logging()


def run_repl(*commands: str):
    return CliRunner().invoke(main, [], input="\n".join(commands) + "\n")


def test_repl_session():
    result = run_repl(
        f"load {EXAMPLES}",
        "list",
        "test ends_in_1 0101",
        "test ends_in_1 10",
        "test anbn aabb",
        "test anbn aab",
        "test flip 0110",
        "generate ends_in_1 2",
        "reach ends_in_1 01",
        "reach anbn ab",
        "exit",
    )
    assert result.exit_code == 0
    out = result.output
    assert "Loaded 3 automata: ends_in_1, anbn, flip" in out
    assert "anbn: PDA, 3 states" in out
    assert out.count("ACCEPTED") == 3
    assert "REJECTED (Rejected: ended in non-final state)" in out
    assert out.count("REJECTED (") == 2
    assert "1, 01, 11" in out
    assert "{A}" in out
    assert "reach is only valid for finite automata" in out
    assert out.rstrip().endswith("Goodbye!")


def test_trace_and_errors():
    result = run_repl(
        f"load {EXAMPLES}",
        "trace anbn ab",
        "trace flip 1",
        "test missing 0",
        "load /nonexistent/file.txt",
        "frobnicate",
    )
    assert result.exit_code == 0
    out = result.output
    assert "start  q0  stack=Z" in out
    assert "q1 -> q2  [ε, Z → Z]" in out
    assert "[1 → 0, R]" in out
    assert "Automaton not found: missing" in out
    assert "Error:" in out
    assert "Unknown command: frobnicate" in out
    assert "Goodbye!" in out


def test_save_and_reload(tmp_path):
    target = tmp_path / "copy.txt"
    result = run_repl(
        f"load {EXAMPLES}",
        f"save flip {target}",
        "clear",
        f"load {target}",
        "test flip 01",
    )
    assert result.exit_code == 0
    assert f"Saved: {target}" in result.output
    assert "Loaded 1 automata: flip" in result.output
    assert "ACCEPTED" in result.output


def test_json_mode():
    lines = [
        {"action": "create_automaton", "initial_state": "q0", "final_states": ["q1"]},
        {"action": "add_transition", "from": "q0", "to": "q1", "symbol": "a"},
        {"action": "accepts", "word": "a"},
    ]
    result = CliRunner().invoke(main, ["--json"], input="\n".join(json.dumps(c) for c in lines) + "\n")
    assert result.exit_code == 0
    responses = [json.loads(line) for line in result.output.splitlines() if line.startswith("{")]
    assert len(responses) == 3
    assert responses[-1]["accepted"] is True


def test_invalid_config(tmp_path):
    config = tmp_path / "settings.yaml"
    config.write_text("engine:\n  max_steps: 0\n", encoding="utf-8")
    result = CliRunner().invoke(main, ["--config", str(config)], input="exit\n")
    assert result.exit_code == 1
    assert "engine.max_steps" in result.output
