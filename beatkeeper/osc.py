"""OSC integration for remote control and beat broadcasting.

Enable it by calling ``metronome.osc()`` before ``metronome.play()``.
The server listens on a UDP port (default 9000) for control messages and
sends beat updates to a target host/port (default 127.0.0.1:9001), so
lighting rigs, visuals or another app can follow the metronome.

Built-in Receive Handlers
─────────────────────────
- ``/bpm <float>``: Set tempo
- ``/volume <float>``: Set master volume (0-1)
- ``/subdivisions <int>``: Set slots per beat (regenerates the pattern)
- ``/beats <int>``: Set beats per measure (regenerates the pattern)
- ``/play``, ``/stop``, ``/toggle``: Transport control
- ``/preset <string>``: Load a preset by name

Built-in Send Events
────────────────────
- ``/beat <int>``: When a slot is heard (0-based slot index)
- ``/pulse <int>``: 1 when the visual pulse rises, 0 when it falls
- ``/bpm <float>``: Alongside every downbeat
"""

import asyncio
import logging
import typing

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

if typing.TYPE_CHECKING:
	from beatkeeper.metronome import Metronome


logger = logging.getLogger(__name__)


class OscServer:

	"""Async OSC server/client for bi-directional communication."""

	def __init__ (
		self,
		metronome: "Metronome",
		receive_port: int = 9000,
		send_port: int = 9001,
		send_host: str = "127.0.0.1"
	) -> None:

		self._metronome = metronome
		self._receive_port = receive_port
		self._send_port = send_port
		self._send_host = send_host

		self._server: typing.Optional[typing.Any] = None
		self._transport: typing.Optional[asyncio.BaseTransport] = None
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None
		self._tasks: typing.Set[asyncio.Task] = set()
		self._dispatcher = pythonosc.dispatcher.Dispatcher()

		self._dispatcher.map("/bpm", self._handle_bpm)
		self._dispatcher.map("/volume", self._handle_volume)
		self._dispatcher.map("/subdivisions", self._handle_subdivisions)
		self._dispatcher.map("/beats", self._handle_beats)
		self._dispatcher.map("/play", self._handle_play)
		self._dispatcher.map("/stop", self._handle_stop)
		self._dispatcher.map("/toggle", self._handle_toggle)
		self._dispatcher.map("/preset", self._handle_preset)


	async def start (self) -> None:

		"""Start the OSC server and client."""

		self._client = pythonosc.udp_client.SimpleUDPClient(self._send_host, self._send_port)

		self._server = pythonosc.osc_server.AsyncIOOSCUDPServer(
			("0.0.0.0", self._receive_port),
			self._dispatcher,
			asyncio.get_running_loop()  # type: ignore[arg-type]
		)

		transport, _ = await self._server.create_serve_endpoint()
		self._transport = transport

		logger.info(f"OSC listening on :{self._receive_port}, sending to {self._send_host}:{self._send_port}")


	async def stop (self) -> None:

		"""Stop the OSC server."""

		for task in list(self._tasks):
			task.cancel()

		if self._transport:
			self._transport.close()
			self._transport = None
			logger.info("OSC server stopped")


	def send (self, address: str, *args: typing.Any) -> None:

		"""Send an OSC message."""

		if self._client:
			try:
				self._client.send_message(address, args)
			except Exception as e:
				logger.warning(f"OSC send error: {e}")


	def send_beat (self, beat_index: int) -> None:

		"""Broadcast the slot being heard, plus the tempo on downbeats."""

		self.send("/beat", beat_index)

		pattern = self._metronome.state.pattern

		if 0 <= beat_index < len(pattern) and pattern[beat_index].is_downbeat:
			self.send("/bpm", float(self._metronome.bpm))


	def send_pulse (self, on: bool) -> None:

		self.send("/pulse", 1 if on else 0)


	def map (self, address: str, handler: typing.Callable) -> None:

		"""Register a custom OSC handler."""

		self._dispatcher.map(address, handler)


	def _spawn (self, coroutine: typing.Coroutine) -> None:

		"""Run a transport coroutine from a (synchronous) OSC handler."""

		task = asyncio.get_running_loop().create_task(coroutine)
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)


	# Handlers

	def _numeric_arg (self, address: str, args: typing.Tuple[typing.Any, ...]) -> typing.Optional[float]:

		if not args:
			return None

		try:
			return float(args[0])
		except (ValueError, TypeError):
			logger.warning(f"Invalid OSC {address} argument: {args[0]}")
			return None

	def _handle_bpm (self, address: str, *args: typing.Any) -> None:
		value = self._numeric_arg(address, args)
		if value is not None:
			self._metronome.set_bpm(value)

	def _handle_volume (self, address: str, *args: typing.Any) -> None:
		value = self._numeric_arg(address, args)
		if value is not None:
			self._metronome.set_master_volume(value)

	def _handle_subdivisions (self, address: str, *args: typing.Any) -> None:
		value = self._numeric_arg(address, args)
		if value is not None:
			self._metronome.set_subdivisions(int(value))

	def _handle_beats (self, address: str, *args: typing.Any) -> None:
		value = self._numeric_arg(address, args)
		if value is not None:
			self._metronome.set_main_beats(int(value))

	def _handle_play (self, address: str, *args: typing.Any) -> None:
		self._spawn(self._metronome.start())

	def _handle_stop (self, address: str, *args: typing.Any) -> None:
		self._metronome.stop()

	def _handle_toggle (self, address: str, *args: typing.Any) -> None:
		self._spawn(self._metronome.toggle())

	def _handle_preset (self, address: str, *args: typing.Any) -> None:
		# address is /preset, first argument is the preset name
		if not args:
			return
		preset = self._metronome.find_preset(str(args[0]))
		if preset is None:
			logger.warning(f"OSC preset not found: {args[0]}")
			return
		self._metronome.load_preset(preset.id)
