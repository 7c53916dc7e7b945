import argparse
import logging
import os

import yaml

import beatkeeper.metronome
import beatkeeper.persistence


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIRECTORY = "~/.beatkeeper"


def load_config (config_path: str = 'config.yaml') -> dict:

	"""
	Load configuration from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		return yaml.safe_load(f) or {}


def build_metronome (config: dict) -> beatkeeper.metronome.Metronome:

	"""
	Create a metronome and enable the consumers named in the config.
	"""

	midi_device = (config.get('midi') or {}).get('device_name')
	storage_directory = (config.get('storage') or {}).get('directory', DEFAULT_STORAGE_DIRECTORY)

	metronome = beatkeeper.metronome.Metronome(
		output_device = midi_device,
		store = beatkeeper.persistence.FileBlobStore(storage_directory)
	)

	if (config.get('display') or {}).get('enabled', True):
		metronome.display()

	osc_config = config.get('osc') or {}

	if osc_config.get('enabled', False):
		metronome.osc(
			receive_port = osc_config.get('receive_port', 9000),
			send_port = osc_config.get('send_port', 9001),
			send_host = osc_config.get('send_host', "127.0.0.1")
		)

	web_config = config.get('web_ui') or {}

	if web_config.get('enabled', False):
		metronome.web_ui(port=web_config.get('port', 8765))

	return metronome


def main () -> None:

	"""
	Main entry point for the beatkeeper application.
	"""

	parser = argparse.ArgumentParser(prog="beatkeeper", description="Interactive MIDI metronome.")
	parser.add_argument("--config", default="config.yaml", help="Path to a YAML config file.")
	args = parser.parse_args()

	logger.info("Beatkeeper starting...")

	metronome = build_metronome(load_config(args.config))
	metronome.play()


if __name__ == "__main__":
	main()
