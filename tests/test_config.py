import pathlib

import pytest

import resonote.config


def test_defaults_without_file (monkeypatch: pytest.MonkeyPatch) -> None:

	monkeypatch.delenv(resonote.config.API_KEY_ENV, raising=False)

	config = resonote.config.load_config()

	assert config.sample_rate == 44100
	assert config.osc_enabled is False
	assert config.display_enabled is True
	assert config.advisor_api_key is None


def test_missing_file_warns_and_uses_defaults (tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture) -> None:

	config = resonote.config.load_config(str(tmp_path / "nope.yaml"))

	assert config.block_size == 512
	assert "not found" in caplog.text


def test_yaml_values_override_defaults (tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> None:

	monkeypatch.delenv(resonote.config.API_KEY_ENV, raising=False)

	path = tmp_path / "resonote.yaml"
	path.write_text(
		"audio:\n"
		"  sample_rate: 48000\n"
		"archive:\n"
		"  path: /tmp/takes.json\n"
		"advisor:\n"
		"  api_key: from-file\n"
		"  model: other-model\n"
		"midi:\n"
		"  input_device: Keystation 49\n"
		"osc:\n"
		"  enabled: true\n"
		"  receive_port: 9100\n"
		"display:\n"
		"  enabled: false\n"
	)

	config = resonote.config.load_config(str(path))

	assert config.sample_rate == 48000
	assert config.block_size == 512
	assert config.archive_path == "/tmp/takes.json"
	assert config.advisor_api_key == "from-file"
	assert config.advisor_model == "other-model"
	assert config.midi_input_device == "Keystation 49"
	assert config.osc_enabled is True
	assert config.osc_receive_port == 9100
	assert config.osc_send_port == 9001
	assert config.display_enabled is False


def test_api_key_from_environment (monkeypatch: pytest.MonkeyPatch) -> None:

	monkeypatch.setenv(resonote.config.API_KEY_ENV, "from-env")

	assert resonote.config.from_dict({}).advisor_api_key == "from-env"
	assert resonote.config.from_dict({"advisor": {"api_key": "from-file"}}).advisor_api_key == "from-file"


def test_non_mapping_section_is_ignored (caplog: pytest.LogCaptureFixture) -> None:

	config = resonote.config.from_dict({"audio": "loud"})

	assert config.sample_rate == 44100
	assert "not a mapping" in caplog.text


def test_non_mapping_file_rejected (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "bad.yaml"
	path.write_text("- just\n- a list\n")

	with pytest.raises(ValueError):
		resonote.config.load_config(str(path))
