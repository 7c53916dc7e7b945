"""Audio output handles.

An audio output owns the device the synthesizer plays through and the clock
that sound trigger times are expressed on. The scheduler never reads the wall
clock to decide *when* a sound plays - only ``AudioOutput.current_time``.

``MidiAudioOutput`` is the default backend. It opens a MIDI port with
``mido`` and uses a monotonic ``time.perf_counter()`` clock that starts at
zero when the port opens.
"""

import logging
import time
import typing

import mido


logger = logging.getLogger(__name__)

STATE_SUSPENDED = "suspended"
STATE_RUNNING = "running"
STATE_CLOSED = "closed"


class AudioError (Exception):

	"""Base class for audio subsystem failures shown to the user."""


class AudioUnavailableError (AudioError):

	"""No usable audio output exists."""


class AudioResumeError (AudioError):

	"""A suspended output refused to resume."""


class AudioOutput:

	"""
	Interface for an audio output with its own monotonic clock.

	Subclasses implement ``current_time``, ``resume``, ``send`` and ``close``.
	"""

	state: str = STATE_SUSPENDED

	@property
	def current_time (self) -> float:

		"""Seconds on the device clock."""

		raise NotImplementedError

	async def resume (self) -> None:

		"""Bring a suspended output to the running state, raising ``AudioResumeError`` if it cannot."""

		raise NotImplementedError

	def send (self, message: mido.Message) -> None:

		raise NotImplementedError

	def close (self) -> None:

		raise NotImplementedError


def select_output_device (device_name: typing.Optional[str] = None) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Select and open a MIDI output device.

	If `device_name` is provided, attempts to open that specific device.
	If `device_name` is None, auto-discovers available devices:
	- If exactly one device exists, it is selected automatically.
	- If multiple devices exist, prompts the user to choose one from the console.
	- If no devices exist, logs an error and returns None.

	Returns:
		A tuple of (device_name, midi_out_object) or (None, None) on failure.
	"""

	try:
		outputs = mido.get_output_names()
		logger.info(f"Available MIDI outputs: {outputs}")

		if not outputs:
			logger.error("No MIDI output devices found.")
			return None, None

		if device_name is not None:
			if device_name not in outputs:
				logger.error(f"MIDI output device '{device_name}' not found. Available devices: {outputs}")
				return None, None
			selected_name = device_name

		elif len(outputs) == 1:
			selected_name = outputs[0]
			logger.info(f"One MIDI output found - using '{selected_name}'")

		else:
			print("\nAvailable MIDI output devices:\n")
			for i, name in enumerate(outputs, 1):
				print(f"  {i}. {name}")
			print()

			while True:
				try:
					choice = int(input(f"Select a device (1-{len(outputs)}): "))
					if 1 <= choice <= len(outputs):
						break
				except (ValueError, EOFError):
					pass
				print(f"Enter a number between 1 and {len(outputs)}.")

			selected_name = outputs[choice - 1]
			print(f"\nTip: to skip this prompt, set midi.device_name: \"{selected_name}\" in config.yaml\n")

		midi_out = mido.open_output(selected_name)
		logger.info(f"Opened MIDI output: {selected_name}")

		return selected_name, midi_out

	except Exception as e:
		logger.error(f"Failed to open MIDI output: {e}")
		return None, None


class MidiAudioOutput (AudioOutput):

	"""
	Audio output backed by a MIDI port.

	The device clock is ``time.perf_counter()`` relative to the moment the
	port opened. MIDI ports have no suspended state, so ``resume`` simply
	marks the output running.
	"""

	def __init__ (self, device_name: typing.Optional[str] = None) -> None:

		"""Open the MIDI port, raising ``AudioUnavailableError`` when none can be opened."""

		name, port = select_output_device(device_name)

		if port is None:
			raise AudioUnavailableError("No MIDI output device is available.")

		self.device_name = name
		self._port = port
		self._origin = time.perf_counter()
		self.state = STATE_SUSPENDED

	@property
	def current_time (self) -> float:

		return time.perf_counter() - self._origin

	async def resume (self) -> None:

		if self.state == STATE_CLOSED:
			raise AudioResumeError("The MIDI output has been closed.")

		self.state = STATE_RUNNING

	def send (self, message: mido.Message) -> None:

		"""Send a MIDI message, logging failures (the device may have been unplugged)."""

		if self._port is None:
			return

		try:
			self._port.send(message)
		except Exception:
			logger.exception("MIDI send failed (device may be disconnected)")

	def close (self) -> None:

		"""Silence and release the port. Safe to call twice."""

		if self._port is None:
			return

		try:
			self._port.panic()
		except Exception:
			logger.exception("MIDI panic failed (device may be disconnected)")

		self._port.close()
		self._port = None
		self.state = STATE_CLOSED

		logger.info(f"Closed MIDI output: {self.device_name}")
