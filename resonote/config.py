"""YAML configuration.

Example ``resonote.yaml``::

	audio:
	  sample_rate: 48000
	  block_size: 256
	archive:
	  path: ~/.resonote/archive.json
	advisor:
	  api_key: "..."          # or set RESONOTE_ADVISOR_KEY
	  model: gemini-flash-latest
	midi:
	  input_device: "Keystation 49"
	osc:
	  enabled: true
	  receive_port: 9000
	  send_port: 9001
	display:
	  enabled: true

Every key is optional; missing keys keep their defaults.
"""

import dataclasses
import logging
import os
import typing

import yaml

import resonote.advisor
import resonote.constants


logger = logging.getLogger(__name__)

API_KEY_ENV = "RESONOTE_ADVISOR_KEY"


@dataclasses.dataclass
class StudioConfig:

	"""Resolved configuration for one studio session."""

	sample_rate: int = resonote.constants.SAMPLE_RATE
	block_size: int = resonote.constants.BLOCK_SIZE
	archive_path: typing.Optional[str] = "~/.resonote/archive.json"
	advisor_api_key: typing.Optional[str] = None
	advisor_model: str = resonote.advisor.DEFAULT_MODEL
	advisor_timeout: float = 20.0
	midi_input_device: typing.Optional[str] = None
	osc_enabled: bool = False
	osc_receive_port: int = 9000
	osc_send_port: int = 9001
	osc_send_host: str = "127.0.0.1"
	display_enabled: bool = True


def _section (raw: typing.Dict[str, typing.Any], name: str) -> typing.Dict[str, typing.Any]:

	"""Return a config section as a dict, treating anything else as empty."""

	value = raw.get(name)

	if value is None:
		return {}

	if not isinstance(value, dict):
		logger.warning(f"Config section {name!r} is not a mapping - ignored")
		return {}

	return value


def from_dict (raw: typing.Dict[str, typing.Any]) -> StudioConfig:

	"""Build a :class:`StudioConfig` from parsed YAML."""

	config = StudioConfig()

	audio = _section(raw, "audio")
	config.sample_rate = int(audio.get("sample_rate", config.sample_rate))
	config.block_size = int(audio.get("block_size", config.block_size))

	archive = _section(raw, "archive")
	config.archive_path = archive.get("path", config.archive_path)

	advisor = _section(raw, "advisor")
	config.advisor_api_key = advisor.get("api_key") or os.environ.get(API_KEY_ENV) or None
	config.advisor_model = advisor.get("model", config.advisor_model)
	config.advisor_timeout = float(advisor.get("timeout", config.advisor_timeout))

	midi = _section(raw, "midi")
	config.midi_input_device = midi.get("input_device", config.midi_input_device)

	osc = _section(raw, "osc")
	config.osc_enabled = bool(osc.get("enabled", config.osc_enabled))
	config.osc_receive_port = int(osc.get("receive_port", config.osc_receive_port))
	config.osc_send_port = int(osc.get("send_port", config.osc_send_port))
	config.osc_send_host = str(osc.get("send_host", config.osc_send_host))

	display = _section(raw, "display")
	config.display_enabled = bool(display.get("enabled", config.display_enabled))

	return config


def load_config (config_path: typing.Optional[str] = None) -> StudioConfig:

	"""
	Load configuration from a YAML file, falling back to defaults.
	"""

	if config_path is None:
		return from_dict({})

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return from_dict({})

	with open(config_path, 'r') as f:
		raw = yaml.safe_load(f) or {}

	if not isinstance(raw, dict):
		raise ValueError(f"Config file {config_path} must contain a mapping at the top level")

	return from_dict(raw)
