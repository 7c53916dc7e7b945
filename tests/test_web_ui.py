import asyncio
import json

import pytest
import websockets.asyncio.client

import beatkeeper
import beatkeeper.web_ui

import conftest


def _make_metronome () -> beatkeeper.Metronome:

	return beatkeeper.Metronome(output_factory=conftest.FakeAudioOutput, synth_factory=conftest.RecordingSynth)


def test_get_state_snapshot () -> None:

	metronome = _make_metronome()
	preset = metronome.save_preset("Rock")

	state = beatkeeper.web_ui.WebUI(metronome).get_state(metronome)

	assert state["playing"] is False
	assert state["bpm"] == 117
	assert state["current_beat"] == 0
	assert state["visual_pulse"] is False
	assert state["visual_shape"] == "circle"
	assert state["master_volume"] == 0.7
	assert state["subdivisions"] == 2
	assert state["main_beats"] == 4
	assert len(state["slots"]) == 8
	assert state["slots"][0] == {
		"label": "1",
		"downbeat": True,
		"color": "bg-blue-500",
		"sounds": [{"type": "kick", "volume": 1.0}, {"type": "hihat", "volume": 0.6}]
	}
	assert state["presets"] == [{"id": preset.id, "name": "Rock"}]  # type: ignore[union-attr]
	assert state["selected_preset_id"] == preset.id  # type: ignore[union-attr]
	assert state["error"] is None

	# Everything must be JSON-serializable.
	json.dumps(state)


@pytest.mark.asyncio
async def test_clients_receive_broadcasts () -> None:

	metronome = _make_metronome()
	web_ui = beatkeeper.web_ui.WebUI(metronome, ws_port=0, host="127.0.0.1", interval=0.02)

	await web_ui.start()

	port = list(web_ui._ws_server.sockets)[0].getsockname()[1]  # type: ignore[union-attr]

	async with websockets.asyncio.client.connect(f"ws://127.0.0.1:{port}") as websocket:
		message = await asyncio.wait_for(websocket.recv(), timeout=2.0)

	assert json.loads(message)["bpm"] == 117

	await web_ui.stop()
