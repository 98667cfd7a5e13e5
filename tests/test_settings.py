import pytest

from settings import ConfigError, EngineConfig, Settings, load_settings


def test_defaults():
    settings = Settings()
    assert settings.engine == EngineConfig()
    assert settings.engine.max_steps == 100000
    assert settings.engine.cycle_limit is None
    assert settings.logging.level == "warning"
    settings.validate()


def test_from_yaml(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "engine:\n  max_steps: 500\n  cycle_limit: 2\n  blank: '#'\nlogging:\n  level: debug\n  format: json\n",
        encoding="utf-8",
    )
    settings = Settings.from_yaml(path)
    assert settings.engine.max_steps == 500
    assert settings.engine.cycle_limit == 2
    assert settings.engine.blank == "#"
    assert settings.engine.max_length == 5
    assert settings.logging.format == "json"


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert Settings.from_yaml(path) == Settings()


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError) as exc:
        Settings.from_yaml(tmp_path / "nope.yaml")
    assert exc.value.field == "path"


def test_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("engine: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        Settings.from_yaml(path)


@pytest.mark.parametrize(
    "data, field",
    [
        ({"engine": {"max_steps": 0}}, "engine.max_steps"),
        ({"engine": {"max_length": -1}}, "engine.max_length"),
        ({"engine": {"cycle_limit": 0}}, "engine.cycle_limit"),
        ({"engine": {"blank": "__"}}, "engine.blank"),
        ({"engine": {"max_steps": "lots"}}, "engine"),
        ({"logging": {"format": "xml"}}, "logging.format"),
    ],
)
def test_invalid_values(data, field):
    with pytest.raises(ConfigError) as exc:
        Settings.from_dict(data)
    assert exc.value.field == field


def test_environment_overrides(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("engine:\n  max_steps: 500\n", encoding="utf-8")
    settings = load_settings(
        path,
        environ={"AUTOMATA_MAX_STEPS": "42", "AUTOMATA_CYCLE_LIMIT": "3", "AUTOMATA_LOG_LEVEL": "info"},
    )
    assert settings.engine.max_steps == 42
    assert settings.engine.cycle_limit == 3
    assert settings.logging.level == "info"


def test_environment_without_file():
    settings = load_settings(environ={"AUTOMATA_STACK_SYMBOL": "$"})
    assert settings.engine.initial_stack_symbol == "$"


def test_bad_environment_value():
    with pytest.raises(ConfigError) as exc:
        load_settings(environ={"AUTOMATA_MAX_STEPS": "many"})
    assert exc.value.field == "AUTOMATA_MAX_STEPS"
    with pytest.raises(ConfigError):
        load_settings(environ={"AUTOMATA_MAX_STEPS": "-3"})
