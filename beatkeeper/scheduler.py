"""Look-ahead transport scheduling.

A coarse polling task hands each slot's sounds to the synthesizer with an
exact start time on the audio output's clock, a short horizon ahead, and
arranges a visual pulse for the moment the slot is heard. Stopping cancels
everything that is still queued.
"""

import asyncio
import logging
import typing

import beatkeeper.audio
import beatkeeper.constants
import beatkeeper.event_emitter
import beatkeeper.state
import beatkeeper.synth


logger = logging.getLogger(__name__)

STOPPED = "stopped"
RUNNING = "running"

NO_AUDIO_MESSAGE = "Audio output is not available on this system."
RESUME_FAILED_MESSAGE = "Unable to start audio. Check the audio output device settings."


def seconds_per_subdivision (bpm: float, subdivisions: int) -> float:

	"""Spacing between consecutive slots, guarding against zero tempo or subdivisions."""

	return 60.0 / max(beatkeeper.constants.MIN_BPM, bpm) / max(1, subdivisions)


class LookAheadScheduler:

	"""
	The transport: turns the live metronome state into timed sound triggers.

	A polling task wakes every ``tick_interval`` seconds of wall-clock time,
	which is coarse and jittery. Each tick schedules every slot that falls
	within ``schedule_ahead`` seconds of the output's device clock, handing
	the synthesizer the exact device time each sound must start at. Ticks
	run more often than the horizon is long, so a late tick never causes a
	late sound - the events it would have scheduled were already queued by
	the previous one.

	Tempo, subdivisions, volume and the pattern are read from ``state`` on
	every iteration, never cached at start, so live edits are heard on the
	very next scheduled slot.

	Events emitted on ``events``:

	- ``"start"`` / ``"stop"`` on transport transitions.
	- ``"schedule" (beat_index, event_time)`` each time a slot is handed to the synthesizer.
	- ``"beat" (beat_index)`` when a slot's visual pulse fires.
	- ``"pulse" (on)`` when the visual pulse flag rises and falls.
	- ``"error" (message)`` when the audio output cannot be opened or resumed.
	"""

	def __init__ (
		self,
		state: beatkeeper.state.MetronomeState,
		output_factory: typing.Callable[[], beatkeeper.audio.AudioOutput],
		synth_factory: typing.Callable[[beatkeeper.audio.AudioOutput], beatkeeper.synth.Synthesizer] = beatkeeper.synth.MidiDrumSynthesizer,
		tick_interval: float = beatkeeper.constants.TICK_INTERVAL,
		schedule_ahead: float = beatkeeper.constants.SCHEDULE_AHEAD_TIME,
		start_offset: float = beatkeeper.constants.START_OFFSET,
		pulse_duration: float = beatkeeper.constants.VISUAL_PULSE_DURATION
	) -> None:

		"""Bind the scheduler to a live state. No audio output is opened until ``start()``.

		Parameters:
			state: The live configuration, read afresh on every tick.
			output_factory: Creates the audio output on first start. May raise
				``AudioError`` when no output is available.
			synth_factory: Builds the synthesizer for the output.
			tick_interval: Wall-clock seconds between polling ticks.
			schedule_ahead: Device-clock horizon, in seconds, scheduled on each tick.
			start_offset: Delay before the first slot after starting.
			pulse_duration: How long the visual pulse flag stays raised.
		"""

		self.state = state
		self._output_factory = output_factory
		self._synth_factory = synth_factory
		self.tick_interval = tick_interval
		self.schedule_ahead = schedule_ahead
		self.start_offset = start_offset
		self.pulse_duration = pulse_duration

		self.output: typing.Optional[beatkeeper.audio.AudioOutput] = None
		self.synth: typing.Optional[beatkeeper.synth.Synthesizer] = None
		self.transport_state = STOPPED
		self.error: typing.Optional[str] = None
		self.task: typing.Optional[asyncio.Task] = None
		self.events = beatkeeper.event_emitter.EventEmitter()

		# Transport cursors
		self.beat_index = 0
		self.next_event_time = 0.0

		# Visual state for consumers
		self.current_beat = 0
		self.visual_pulse = False

		self._visual_handles: typing.Set[asyncio.TimerHandle] = set()
		self._pulse_handle: typing.Optional[asyncio.TimerHandle] = None

	@property
	def running (self) -> bool:

		return self.transport_state == RUNNING

	@property
	def pending_visual_count (self) -> int:

		"""Number of visual callbacks scheduled but not yet fired."""

		return len(self._visual_handles)

	def _report_error (self, message: str) -> None:

		self.error = message
		logger.error(message)
		self.events.emit("error", message)

	def _ensure_output (self) -> typing.Optional[beatkeeper.audio.AudioOutput]:

		"""Create the audio output and synthesizer once, on first use."""

		if self.output is not None:
			return self.output

		try:
			output = self._output_factory()
		except beatkeeper.audio.AudioError as exc:
			self._report_error(str(exc) or NO_AUDIO_MESSAGE)
			return None
		except Exception:
			logger.exception("Audio output could not be created")
			self._report_error(NO_AUDIO_MESSAGE)
			return None

		self.output = output
		self.synth = self._synth_factory(output)

		return output

	async def start (self) -> bool:

		"""Start playback from the first slot.

		Always performs a full stop first. Returns False, leaving the transport
		stopped and ``error`` set, when the audio output cannot be opened or
		refuses to resume.
		"""

		self.stop()

		output = self._ensure_output()

		if output is None:
			return False

		if output.state != beatkeeper.audio.STATE_RUNNING:
			try:
				await output.resume()
			except Exception as exc:
				logger.debug(f"Audio resume rejected: {exc}")
				self._report_error(RESUME_FAILED_MESSAGE)
				return False

		self.error = None
		self.beat_index = 0
		self.next_event_time = output.current_time + self.start_offset
		self.transport_state = RUNNING

		logger.info("Transport started")
		self.events.emit("start")

		self.tick()
		self.task = asyncio.create_task(self._run_loop())

		return True

	def stop (self) -> None:

		"""Stop playback and cancel everything still queued, sounds and visual callbacks alike.

		Notes already sounding are cut off. The display returns to the first slot.
		"""

		was_running = self.running
		self.transport_state = STOPPED

		if self.task is not None:
			self.task.cancel()
			self.task = None

		for handle in self._visual_handles:
			handle.cancel()

		self._visual_handles.clear()

		cancel_sounds = getattr(self.synth, "cancel_pending", None)

		if cancel_sounds is not None:
			cancel_sounds()

		if self._pulse_handle is not None:
			self._pulse_handle.cancel()
			self._pulse_handle = None

		self.beat_index = 0
		self.next_event_time = 0.0
		self.current_beat = 0
		self.visual_pulse = False

		if was_running:
			logger.info("Transport stopped")
			self.events.emit("stop")

	async def toggle (self) -> bool:

		"""Start when stopped, stop when running. Returns whether the transport is now running."""

		if self.running:
			self.stop()
			return False

		return await self.start()

	async def close (self) -> None:

		"""Stop and release the audio output. Final teardown."""

		self.stop()

		close_synth = getattr(self.synth, "close", None)

		if close_synth is not None:
			close_synth()

		if self.output is not None:
			self.output.close()

		self.output = None
		self.synth = None

	async def _run_loop (self) -> None:

		"""Polling loop: one tick per ``tick_interval`` while running."""

		while self.running:

			await asyncio.sleep(self.tick_interval)

			if not self.running:
				break

			try:
				self.tick()
			except Exception:
				logger.exception("Scheduler tick failed")

	def tick (self) -> None:

		"""Schedule every slot that starts before the look-ahead horizon.

		An empty pattern idles without advancing. The pattern, tempo,
		subdivisions and volume are re-read on every iteration.
		"""

		if not self.running or self.output is None or self.synth is None:
			return

		now = self.output.current_time

		while self.next_event_time < now + self.schedule_ahead:

			pattern = self.state.pattern

			if not pattern:
				return

			config = self.state.config
			beat_index = self.beat_index % len(pattern)
			event_time = self.next_event_time

			for sound in pattern[beat_index].sounds:
				amplitude = config.master_volume * sound.gain * beatkeeper.constants.MASTER_OUTPUT_BOOST
				self.synth.trigger(sound.timbre, amplitude, event_time)

			self._schedule_visual_pulse(beat_index, event_time, now)
			self.events.emit("schedule", beat_index, event_time)

			self.next_event_time = event_time + seconds_per_subdivision(config.bpm, config.subdivisions)
			self.beat_index = (beat_index + 1) % len(pattern)

	def _schedule_visual_pulse (self, beat_index: int, event_time: float, now: float) -> None:

		"""Arrange for the beat display to update when the slot is heard."""

		loop = asyncio.get_running_loop()
		delay = max(0.0, event_time - now)
		handle: typing.Optional[asyncio.TimerHandle] = None

		def fire () -> None:
			self._visual_handles.discard(handle)  # type: ignore[arg-type]
			self._show_beat(beat_index)

		handle = loop.call_later(delay, fire)
		self._visual_handles.add(handle)

	def _show_beat (self, beat_index: int) -> None:

		self.current_beat = beat_index
		self.visual_pulse = True

		if self._pulse_handle is not None:
			self._pulse_handle.cancel()

		self._pulse_handle = asyncio.get_running_loop().call_later(self.pulse_duration, self._clear_pulse)

		self.events.emit("beat", beat_index)
		self.events.emit("pulse", True)

	def _clear_pulse (self) -> None:

		self._pulse_handle = None
		self.visual_pulse = False
		self.events.emit("pulse", False)
