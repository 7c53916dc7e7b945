import asyncio

import pytest

import beatkeeper.audio
import beatkeeper.scheduler
import beatkeeper.state
import beatkeeper.synth

import conftest


def _make_scheduler (
	output: conftest.FakeAudioOutput,
	synth: conftest.RecordingSynth,
	state: beatkeeper.state.MetronomeState = None  # type: ignore[assignment]
) -> beatkeeper.scheduler.LookAheadScheduler:

	"""Scheduler with a polling interval long enough that only explicit ticks run."""

	return beatkeeper.scheduler.LookAheadScheduler(
		state = state if state is not None else beatkeeper.state.MetronomeState(),
		output_factory = lambda: output,
		synth_factory = lambda _output: synth,
		tick_interval = 60.0
	)


def test_seconds_per_subdivision () -> None:

	assert beatkeeper.scheduler.seconds_per_subdivision(120, 2) == pytest.approx(0.25)
	assert beatkeeper.scheduler.seconds_per_subdivision(60, 1) == pytest.approx(1.0)

	# Zero tempo and zero subdivisions are guarded rather than dividing by zero.
	assert beatkeeper.scheduler.seconds_per_subdivision(0, 0) == pytest.approx(600.0)


@pytest.mark.asyncio
async def test_start_schedules_first_slot_after_offset (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	scheduler = _make_scheduler(fake_output, recording_synth)

	assert await scheduler.start()
	assert scheduler.running
	assert fake_output.state == beatkeeper.audio.STATE_RUNNING

	# Default pattern slot 0: kick 1.0 and hi-hat 0.6, master volume 0.7, boost 2.5.
	assert recording_synth.triggers == [
		("kick", pytest.approx(1.75), pytest.approx(0.03)),
		("hihat", pytest.approx(1.05), pytest.approx(0.03)),
	]

	scheduler.stop()


@pytest.mark.asyncio
async def test_spacing_follows_tempo (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	"""At 120 BPM with two subdivisions, slots are exactly 0.25 s apart on the device clock."""

	state = beatkeeper.state.MetronomeState()
	state.set_bpm(120)
	scheduler = _make_scheduler(fake_output, recording_synth, state)

	await scheduler.start()

	fake_output.now = 1.0
	scheduler.tick()

	assert recording_synth.times() == pytest.approx([0.03, 0.28, 0.53, 0.78, 1.03])
	assert scheduler.beat_index == 5

	scheduler.stop()


@pytest.mark.asyncio
async def test_horizon_limits_scheduling (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	"""Nothing beyond now + 120 ms is scheduled."""

	state = beatkeeper.state.MetronomeState()
	state.set_bpm(120)
	scheduler = _make_scheduler(fake_output, recording_synth, state)

	await scheduler.start()

	fake_output.now = 0.15
	scheduler.tick()

	# Horizon is 0.15 + 0.12 = 0.27, short of the next slot at 0.28.
	assert recording_synth.times() == pytest.approx([0.03])

	fake_output.now = 0.161
	scheduler.tick()

	assert recording_synth.times() == pytest.approx([0.03, 0.28])

	scheduler.stop()


@pytest.mark.asyncio
async def test_live_tempo_change_applies_from_next_slot (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	state = beatkeeper.state.MetronomeState()
	state.set_bpm(120)
	scheduler = _make_scheduler(fake_output, recording_synth, state)

	await scheduler.start()
	fake_output.now = 0.2
	scheduler.tick()

	# The slot at 0.53 was placed when 0.28 was scheduled. The gap after it uses the new tempo.
	state.set_bpm(60)

	fake_output.now = 0.7
	scheduler.tick()

	assert recording_synth.times() == pytest.approx([0.03, 0.28, 0.53])
	assert scheduler.next_event_time == pytest.approx(1.03)

	fake_output.now = 1.0
	scheduler.tick()

	assert recording_synth.times() == pytest.approx([0.03, 0.28, 0.53, 1.03])

	scheduler.stop()


@pytest.mark.asyncio
async def test_live_volume_and_pattern_edits (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	state = beatkeeper.state.MetronomeState()
	state.set_bpm(120)
	scheduler = _make_scheduler(fake_output, recording_synth, state)

	await scheduler.start()

	state.set_master_volume(0.4)
	state.set_sound_timbre(1, 0, "cowbell")

	fake_output.now = 0.2
	scheduler.tick()

	assert recording_synth.triggers[-1] == ("cowbell", pytest.approx(0.4 * 0.6 * 2.5), pytest.approx(0.28))

	scheduler.stop()


@pytest.mark.asyncio
async def test_pattern_wraps (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	state = beatkeeper.state.MetronomeState()
	state.set_main_beats(1)
	state.set_subdivisions(2)
	state.set_bpm(120)
	scheduler = _make_scheduler(fake_output, recording_synth, state)

	indices: list[int] = []
	scheduler.events.on("schedule", lambda beat_index, _time: indices.append(beat_index))

	await scheduler.start()
	fake_output.now = 0.8
	scheduler.tick()

	assert indices == [0, 1, 0, 1]

	scheduler.stop()


@pytest.mark.asyncio
async def test_empty_pattern_idles (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	state = beatkeeper.state.MetronomeState()
	scheduler = _make_scheduler(fake_output, recording_synth, state)

	await scheduler.start()
	state.pattern = ()
	next_time = scheduler.next_event_time

	fake_output.now = 5.0
	scheduler.tick()

	assert scheduler.next_event_time == next_time
	assert len(recording_synth.triggers) == 2

	scheduler.stop()


@pytest.mark.asyncio
async def test_stop_cancels_pending_visuals (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	scheduler = _make_scheduler(fake_output, recording_synth)
	beats: list[int] = []
	scheduler.events.on("beat", beats.append)

	await scheduler.start()

	assert scheduler.pending_visual_count == 1

	scheduler.stop()

	assert scheduler.pending_visual_count == 0
	assert scheduler.current_beat == 0
	assert scheduler.visual_pulse is False
	assert scheduler.next_event_time == 0.0

	await asyncio.sleep(0.1)

	assert beats == []


@pytest.mark.asyncio
async def test_stop_silences_queued_sounds (fake_output: conftest.FakeAudioOutput) -> None:

	"""Sounds handed to the synthesizer ahead of time never play once the transport stops."""

	scheduler = beatkeeper.scheduler.LookAheadScheduler(
		state = beatkeeper.state.MetronomeState(),
		output_factory = lambda: fake_output,
		synth_factory = beatkeeper.synth.MidiDrumSynthesizer,
		tick_interval = 60.0
	)

	await scheduler.start()

	assert scheduler.synth.pending_count > 0

	scheduler.stop()

	assert scheduler.synth.pending_count == 0

	await asyncio.sleep(0.2)

	assert [message for message in fake_output.sent if message.type == "note_on"] == []

	await scheduler.close()


@pytest.mark.asyncio
async def test_restart_drops_sounds_from_previous_run (fake_output: conftest.FakeAudioOutput) -> None:

	scheduler = beatkeeper.scheduler.LookAheadScheduler(
		state = beatkeeper.state.MetronomeState(),
		output_factory = lambda: fake_output,
		synth_factory = beatkeeper.synth.MidiDrumSynthesizer,
		tick_interval = 60.0
	)

	await scheduler.start()
	await scheduler.start()
	await asyncio.sleep(0.2)

	# Only the restarted first slot is heard: one kick and one hi-hat.
	note_ons = [message for message in fake_output.sent if message.type == "note_on"]

	assert len(note_ons) == 2

	await scheduler.close()


@pytest.mark.asyncio
async def test_stop_cancels_synth_notes (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	scheduler = _make_scheduler(fake_output, recording_synth)

	await scheduler.start()
	scheduler.stop()

	assert recording_synth.cancelled >= 1


@pytest.mark.asyncio
async def test_visual_pulse_rises_and_falls (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	scheduler = _make_scheduler(fake_output, recording_synth)
	beats: list[int] = []
	pulses: list[bool] = []
	scheduler.events.on("beat", beats.append)
	scheduler.events.on("pulse", pulses.append)

	await scheduler.start()
	await asyncio.sleep(0.2)

	assert beats == [0]
	assert pulses == [True, False]
	assert scheduler.visual_pulse is False

	scheduler.stop()


@pytest.mark.asyncio
async def test_restart_begins_at_first_slot (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	scheduler = _make_scheduler(fake_output, recording_synth)

	await scheduler.start()
	fake_output.now = 2.0
	scheduler.tick()

	await scheduler.start()

	assert scheduler.beat_index == 1
	assert recording_synth.triggers[-1][2] == pytest.approx(2.03)
	assert recording_synth.triggers[-1][0] == "hihat"
	assert recording_synth.triggers[-2][0] == "kick"

	scheduler.stop()


@pytest.mark.asyncio
async def test_start_without_audio_reports_error (recording_synth: conftest.RecordingSynth) -> None:

	def no_output () -> beatkeeper.audio.AudioOutput:
		raise beatkeeper.audio.AudioUnavailableError("")

	scheduler = beatkeeper.scheduler.LookAheadScheduler(
		state = beatkeeper.state.MetronomeState(),
		output_factory = no_output,
		synth_factory = lambda _output: recording_synth
	)

	errors: list[str] = []
	scheduler.events.on("error", errors.append)

	assert not await scheduler.start()
	assert scheduler.transport_state == beatkeeper.scheduler.STOPPED
	assert scheduler.error == beatkeeper.scheduler.NO_AUDIO_MESSAGE
	assert errors == [beatkeeper.scheduler.NO_AUDIO_MESSAGE]
	assert recording_synth.triggers == []


@pytest.mark.asyncio
async def test_resume_rejection_reports_error (recording_synth: conftest.RecordingSynth) -> None:

	output = conftest.FakeAudioOutput(fail_resume=True)
	scheduler = _make_scheduler(output, recording_synth)

	assert not await scheduler.start()
	assert not scheduler.running
	assert scheduler.error == beatkeeper.scheduler.RESUME_FAILED_MESSAGE

	# A later successful start clears the error.
	output.fail_resume = False

	assert await scheduler.start()
	assert scheduler.error is None

	scheduler.stop()


@pytest.mark.asyncio
async def test_output_created_once (recording_synth: conftest.RecordingSynth) -> None:

	created: list[conftest.FakeAudioOutput] = []

	def factory () -> conftest.FakeAudioOutput:
		output = conftest.FakeAudioOutput()
		created.append(output)
		return output

	scheduler = beatkeeper.scheduler.LookAheadScheduler(
		state = beatkeeper.state.MetronomeState(),
		output_factory = factory,
		synth_factory = lambda _output: recording_synth,
		tick_interval = 60.0
	)

	await scheduler.start()
	scheduler.stop()
	await scheduler.start()

	assert len(created) == 1
	assert created[0].resume_calls == 1


@pytest.mark.asyncio
async def test_toggle_and_events (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	scheduler = _make_scheduler(fake_output, recording_synth)
	transitions: list[str] = []
	scheduler.events.on("start", lambda: transitions.append("start"))
	scheduler.events.on("stop", lambda: transitions.append("stop"))

	assert await scheduler.toggle()
	assert not await scheduler.toggle()

	# Stopping an already stopped transport is silent.
	scheduler.stop()

	assert transitions == ["start", "stop"]


@pytest.mark.asyncio
async def test_close_releases_output (fake_output: conftest.FakeAudioOutput, recording_synth: conftest.RecordingSynth) -> None:

	scheduler = _make_scheduler(fake_output, recording_synth)

	await scheduler.start()
	await scheduler.close()

	assert fake_output.closed
	assert recording_synth.closed
	assert scheduler.output is None
	assert not scheduler.running


@pytest.mark.asyncio
async def test_polling_loop_keeps_scheduling (recording_synth: conftest.RecordingSynth) -> None:

	"""With a real polling interval, the background task ticks on its own."""

	output = conftest.FakeAudioOutput()
	scheduler = beatkeeper.scheduler.LookAheadScheduler(
		state = beatkeeper.state.MetronomeState(),
		output_factory = lambda: output,
		synth_factory = lambda _output: recording_synth,
		tick_interval = 0.01
	)

	await scheduler.start()
	output.now = 1.0
	await asyncio.sleep(0.05)

	assert len(recording_synth.times()) > 1

	scheduler.stop()
