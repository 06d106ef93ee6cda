import pytest

from captioner.cli import AUTO_OUTPUT, CLIHandler
from captioner.config_loader import DEFAULT_CONFIG
from captioner.exceptions import ConfigurationError


def parse(*argv):
    return CLIHandler().parser.parse_args(["-i", "talk.mp4", *argv])


def test_flags_left_unset_do_not_override_config():
    args = parse()

    assert args.output is None
    assert all(value is None for value in CLIHandler._overrides(args).values())


def test_output_without_value_requests_default_path():
    assert parse("--output").output == AUTO_OUTPUT
    assert parse("--output", "out.mp4").output == "out.mp4"


def test_boolean_flags_can_be_negated():
    args = parse("--no-burn-in", "--bilingual", "--translate-batch-size", "30", "--chunk-seconds", "120")
    overrides = CLIHandler._overrides(args)

    assert overrides['burn_in'] is False
    assert overrides['bilingual'] is True
    assert overrides['translate_batch_size'] == 30
    assert overrides['chunk_seconds'] == 120.0


def test_default_config_file_is_optional(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    config = CLIHandler().load_config(parse("--target-language", "en"))

    assert config['target_language'] == "en"
    assert config['translate_batch_size'] == DEFAULT_CONFIG['translate_batch_size']


def test_default_config_file_is_read_when_present(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("translate_batch_size: 25\n", encoding="utf-8")

    assert CLIHandler().load_config(parse())['translate_batch_size'] == 25


def test_explicit_config_file_must_exist(tmp_path):
    with pytest.raises(FileNotFoundError):
        CLIHandler().load_config(parse("-c", str(tmp_path / "missing.yaml")))


def test_invalid_override_is_a_configuration_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigurationError):
        CLIHandler().load_config(parse("--translate-batch-size", "0"))


def test_run_exits_when_input_is_missing(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("captioner.cli.setup_logging", lambda **kwargs: None)

    with pytest.raises(SystemExit) as exc_info:
        CLIHandler().run(["-i", str(tmp_path / "missing.mp4")])
    assert exc_info.value.code == 1


def test_fallback_marker_can_be_cleared_from_the_command_line(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert CLIHandler().load_config(parse())['fallback_marker'] == "[untranslated]"
    assert CLIHandler().load_config(parse("--fallback-marker", ""))['fallback_marker'] == ""
