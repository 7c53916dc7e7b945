import asyncio
import logging
import typing

import mido

import beatkeeper.audio
import beatkeeper.constants
import beatkeeper.constants.gm_drums


logger = logging.getLogger(__name__)

NOTE_LENGTH = 0.05


@typing.runtime_checkable
class Synthesizer (typing.Protocol):

	"""
	Anything that can play a named sound at a device-clock time.
	"""

	def trigger (self, timbre: str, amplitude: float, at_time: float) -> None:

		"""
		Play ``timbre`` at ``amplitude`` (>= 0) when the output clock reaches ``at_time``.
		"""

		...


def amplitude_to_velocity (amplitude: float) -> int:

	"""Map a trigger amplitude (0 to MASTER_OUTPUT_BOOST) onto MIDI velocity 0-127."""

	scaled = max(0.0, min(1.0, amplitude / beatkeeper.constants.MASTER_OUTPUT_BOOST))

	return int(round(scaled * 127))


class MidiDrumSynthesizer:

	"""
	Plays each sound name as a General MIDI drum note.

	``trigger`` is called ahead of time by the scheduler. The note_on is held
	back on the event loop until the output clock reaches ``at_time``, then a
	note_off follows ``NOTE_LENGTH`` seconds later. Late triggers play
	immediately.
	"""

	def __init__ (
		self,
		output: beatkeeper.audio.AudioOutput,
		channel: int = beatkeeper.constants.gm_drums.GM_DRUM_CHANNEL,
		note_map: typing.Optional[typing.Dict[str, int]] = None
	) -> None:

		self.output = output
		self.channel = channel
		self.note_map = note_map if note_map is not None else beatkeeper.constants.gm_drums.SOUND_NOTE_MAP
		self._pending: typing.Set[asyncio.TimerHandle] = set()
		self._sounding: typing.Dict[int, int] = {}

	def trigger (self, timbre: str, amplitude: float, at_time: float) -> None:

		if amplitude <= beatkeeper.constants.SILENCE_THRESHOLD:
			return

		note = self.note_map.get(timbre)

		if note is None:
			logger.debug(f"No MIDI note for sound {timbre!r}")
			return

		velocity = max(1, amplitude_to_velocity(amplitude))
		delay = max(0.0, at_time - self.output.current_time)

		self._call_later(delay, self._send, mido.Message('note_on', channel=self.channel, note=note, velocity=velocity))
		self._call_later(delay + NOTE_LENGTH, self._send, mido.Message('note_off', channel=self.channel, note=note, velocity=0))

	def _call_later (self, delay: float, callback: typing.Callable[[mido.Message], None], message: mido.Message) -> None:

		loop = asyncio.get_running_loop()
		handle: typing.Optional[asyncio.TimerHandle] = None

		def fire () -> None:
			self._pending.discard(handle)  # type: ignore[arg-type]
			callback(message)

		handle = loop.call_later(delay, fire)
		self._pending.add(handle)

	def _send (self, message: mido.Message) -> None:

		if message.type == "note_on":
			self._sounding[message.note] = self._sounding.get(message.note, 0) + 1
		elif self._sounding.get(message.note, 0) > 1:
			self._sounding[message.note] -= 1
		else:
			self._sounding.pop(message.note, None)

		self.output.send(message)

	@property
	def pending_count (self) -> int:

		return len(self._pending)

	def cancel_pending (self) -> None:

		"""Drop every queued note and silence notes that are still sounding."""

		for handle in self._pending:
			handle.cancel()

		self._pending.clear()

		for note in list(self._sounding):
			self.output.send(mido.Message('note_off', channel=self.channel, note=note, velocity=0))

		self._sounding.clear()

	def close (self) -> None:

		self.cancel_pending()
