import asyncio
import logging
import signal
import typing

import beatkeeper.audio
import beatkeeper.display
import beatkeeper.osc
import beatkeeper.persistence
import beatkeeper.presets
import beatkeeper.scheduler
import beatkeeper.state
import beatkeeper.synth
import beatkeeper.web_ui


logger = logging.getLogger(__name__)


async def run_until_stopped (metronome: "Metronome", autostart: bool = True) -> None:

	"""
	Run until a stop signal is received.

	When ``autostart`` is set and the transport cannot start (no audio output,
	say), returns straight away unless a remote control surface (OSC) is
	available to retry from.
	"""

	if autostart:
		started = await metronome.start()

		if not started and metronome._osc_server is None:
			logger.error(f"Not playing: {metronome.error}")
			return

	logger.info("Metronome ready. Press Ctrl+C to stop.")

	stop_event = asyncio.Event()
	loop = asyncio.get_running_loop()

	def _request_stop () -> None:

		"""
		Signal handler to request a clean shutdown.
		"""

		stop_event.set()

	for sig in (signal.SIGINT, signal.SIGTERM):
		loop.add_signal_handler(sig, _request_stop)

	await stop_event.wait()


class Metronome:

	"""
	The top-level controller: live state, transport, persistence and consumers.

	Typical workflow:
	1. Create a ``Metronome``, optionally with a blob store to restore from.
	2. Enable the terminal display, OSC or the WebSocket UI as required.
	3. Call ``play()``.

	Example:
		```python
		metronome = beatkeeper.Metronome(store=beatkeeper.persistence.FileBlobStore("~/.beatkeeper"))
		metronome.set_bpm(96)
		metronome.display()
		metronome.play()
		```
	"""

	def __init__ (
		self,
		output_device: typing.Optional[str] = None,
		store: typing.Optional[beatkeeper.persistence.BlobStore] = None,
		output_factory: typing.Optional[typing.Callable[[], beatkeeper.audio.AudioOutput]] = None,
		synth_factory: typing.Callable[[beatkeeper.audio.AudioOutput], beatkeeper.synth.Synthesizer] = beatkeeper.synth.MidiDrumSynthesizer
	) -> None:

		"""
		Parameters:
			output_device: MIDI output port name. When omitted, the only available
				port is used, or the user is prompted to pick one.
			store: Blob store to restore the saved state from and save it back to.
				Without one, nothing is persisted.
			output_factory: Replaces the MIDI output, for other backends or tests.
			synth_factory: Builds the synthesizer for the opened output.
		"""

		self.output_device = output_device
		self.store = store
		self.state = beatkeeper.state.MetronomeState()

		if store is not None:
			restored = beatkeeper.persistence.read_state(store)
			if restored is not None:
				self.state.apply(restored)
				logger.info("Restored saved state")

		if output_factory is None:
			output_factory = lambda: beatkeeper.audio.MidiAudioOutput(output_device)

		self._scheduler = beatkeeper.scheduler.LookAheadScheduler(
			state = self.state,
			output_factory = output_factory,
			synth_factory = synth_factory
		)

		self._writer: typing.Optional[beatkeeper.persistence.DebouncedWriter] = None

		if store is not None:
			self._writer = beatkeeper.persistence.DebouncedWriter(store, self.state.snapshot)
			self.state.events.on("change", self._writer.request)

		self._display: typing.Optional[beatkeeper.display.Display] = None
		self._osc_server: typing.Optional[beatkeeper.osc.OscServer] = None
		self._web_ui: typing.Optional[beatkeeper.web_ui.WebUI] = None

	@property
	def scheduler (self) -> beatkeeper.scheduler.LookAheadScheduler:
		"""The underlying ``LookAheadScheduler``."""
		return self._scheduler

	@property
	def playing (self) -> bool:
		return self._scheduler.running

	@property
	def bpm (self) -> float:
		return self.state.config.bpm

	@property
	def current_beat (self) -> int:
		return self._scheduler.current_beat

	@property
	def visual_pulse (self) -> bool:
		return self._scheduler.visual_pulse

	@property
	def error (self) -> typing.Optional[str]:
		"""The last audio error message, or None."""
		return self._scheduler.error

	def on_event (self, event_name: str, callback: typing.Callable[..., typing.Any]) -> None:

		"""
		Register a callback for a transport event ("start", "stop", "beat", "pulse", "schedule", "error").
		"""

		self._scheduler.events.on(event_name, callback)


	# ─── Transport ───────────────────────────────────────────────────

	async def start (self) -> bool:
		return await self._scheduler.start()

	def stop (self) -> None:
		self._scheduler.stop()

	async def toggle (self) -> bool:
		return await self._scheduler.toggle()


	# ─── Live edits ──────────────────────────────────────────────────

	def set_bpm (self, bpm: float) -> None:

		"""
		Change the tempo. Heard from the next scheduled slot, no restart needed.
		"""

		self.state.set_bpm(bpm)

	def set_master_volume (self, volume: float) -> None:
		self.state.set_master_volume(volume)

	def set_subdivisions (self, subdivisions: int) -> None:
		self.state.set_subdivisions(subdivisions)

	def set_main_beats (self, main_beats: int) -> None:
		self.state.set_main_beats(main_beats)

	def save_preset (self, name: str) -> typing.Optional[beatkeeper.presets.Preset]:
		return self.state.save_preset(name)

	def load_preset (self, preset_id: str) -> bool:
		return self.state.load_preset(preset_id)

	def find_preset (self, name: str) -> typing.Optional[beatkeeper.presets.Preset]:

		"""Look a preset up by name, ignoring case."""

		for preset in self.state.presets:
			if preset.name.lower() == name.lower():
				return preset

		return None


	# ─── Consumers ───────────────────────────────────────────────────

	def display (self, enabled: bool = True) -> None:

		"""
		Show a live status line with the beat row and pulse indicator on stderr.
		"""

		self._display = beatkeeper.display.Display(self) if enabled else None

	def osc (self, receive_port: int = 9000, send_port: int = 9001, send_host: str = "127.0.0.1") -> None:

		"""
		Accept OSC control messages and send beat/pulse messages.
		"""

		self._osc_server = beatkeeper.osc.OscServer(self, receive_port=receive_port, send_port=send_port, send_host=send_host)

	def web_ui (self, port: int = 8765) -> None:

		"""
		Broadcast live state as JSON to WebSocket clients.
		"""

		self._web_ui = beatkeeper.web_ui.WebUI(self, ws_port=port)


	# ─── Running ─────────────────────────────────────────────────────

	def play (self, autostart: bool = True) -> None:

		"""
		Run the metronome. Blocks until interrupted (e.g. Ctrl+C).
		"""

		try:
			asyncio.run(self._run(autostart))

		except KeyboardInterrupt:
			pass

	async def _run (self, autostart: bool = True) -> None:

		"""
		Async entry point: start consumers, run the transport, then tear everything down.
		"""

		if self._display is not None:
			self._display.start()
			self.on_event("beat", self._display.update)
			self.on_event("pulse", self._display.update)
			self.on_event("stop", self._display.update)

		if self._osc_server is not None:
			await self._osc_server.start()
			self.on_event("beat", self._osc_server.send_beat)
			self.on_event("pulse", self._osc_server.send_pulse)

		if self._web_ui is not None:
			await self._web_ui.start()

		try:
			await run_until_stopped(self, autostart=autostart)

		finally:
			await self.shutdown()

	async def shutdown (self) -> None:

		"""Stop playback, save pending changes, release the audio output and stop consumers."""

		await self._scheduler.close()

		if self._writer is not None and self._writer.pending:
			self._writer.flush()

		if self._web_ui is not None:
			await self._web_ui.stop()

		if self._osc_server is not None:
			await self._osc_server.stop()

		if self._display is not None:
			self._display.stop()
