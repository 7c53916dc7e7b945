import asyncio
import json
import logging
import typing
import weakref

import websockets
import websockets.asyncio.server
import websockets.exceptions

logger = logging.getLogger(__name__)

class WebUI:

    """
    Background WebSocket state broadcaster.
    Pushes the metronome's live state - transport, current beat, pulse flag,
    slots and presets - to connected browser clients without blocking the
    scheduler. Rendering is entirely the client's business.
    """

    def __init__ (self, metronome: typing.Any, ws_port: int = 8765, host: str = "0.0.0.0", interval: float = 0.1) -> None:

        self.metronome_ref = weakref.ref(metronome)
        self.ws_port = ws_port
        self.host = host
        self.interval = interval
        self._ws_server: typing.Optional[websockets.asyncio.server.Server] = None
        self._broadcast_task: typing.Optional[asyncio.Task] = None
        self._clients: typing.Set[websockets.asyncio.server.ServerConnection] = set()

    async def start (self) -> None:

        try:
            self._ws_server = await websockets.asyncio.server.serve(self._handle_client, self.host, self.ws_port)
            self._broadcast_task = asyncio.create_task(self._broadcast_loop())
            logger.info(f"Web UI state feed available at ws://localhost:{self.ws_port}")
        except OSError as e:
            logger.error(f"WebSocket server error: {e}")

    async def _handle_client (self, websocket: websockets.asyncio.server.ServerConnection) -> None:

        self._clients.add(websocket)
        try:
            # Incoming messages are ignored; reading keeps the connection open cleanly.
            async for _message in websocket:
                pass
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            self._clients.discard(websocket)

    async def _broadcast_loop (self) -> None:

        while True:
            # Ten updates a second keeps the page responsive; beat accuracy comes from the audio, not this feed
            await asyncio.sleep(self.interval)

            if not self._clients:
                continue

            metronome = self.metronome_ref()
            if metronome is None:
                break

            try:
                message = json.dumps(self.get_state(metronome))
                websockets.broadcast(self._clients, message)
            except Exception:
                logger.exception("Error broadcasting UI state")

    def get_state (self, metronome: typing.Any) -> typing.Dict[str, typing.Any]:

        config = metronome.state.config

        return {
            "playing": metronome.playing,
            "bpm": config.bpm,
            "current_beat": metronome.current_beat,
            "visual_pulse": metronome.visual_pulse,
            "visual_shape": config.visual_shape,
            "master_volume": config.master_volume,
            "subdivisions": config.subdivisions,
            "main_beats": config.main_beats,
            "slots": [
                {
                    "label": slot.label,
                    "downbeat": slot.is_downbeat,
                    "color": slot.color,
                    "sounds": [{"type": sound.timbre, "volume": sound.gain} for sound in slot.sounds]
                }
                for slot in metronome.state.pattern
            ],
            "presets": [{"id": preset.id, "name": preset.name} for preset in metronome.state.presets],
            "selected_preset_id": metronome.state.presets.selected_id,
            "error": metronome.error
        }

    async def stop (self) -> None:

        if self._broadcast_task:
            self._broadcast_task.cancel()
            self._broadcast_task = None
        if self._ws_server:
            self._ws_server.close()
            await self._ws_server.wait_closed()
            self._ws_server = None
