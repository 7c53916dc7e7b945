import typing

import mido
import pytest

import beatkeeper.audio


class FakeMidiOut:

	"""Minimal MIDI output stub for tests that records what it is sent."""

	def __init__ (self) -> None:

		self.messages: typing.List[mido.Message] = []
		self.closed = False
		self.panicked = False

	def send (self, message: mido.Message) -> None:

		"""Record outgoing MIDI messages."""

		self.messages.append(message)


	def cancel_pending (self) -> None:

		self.cancelled += 1

	def close (self) -> None:

		self.closed = True


	def panic (self) -> None:

		self.panicked = True


# Module-level reference so tests can inspect the most recently opened FakeMidiOut.
_current_fake_output: typing.Optional[FakeMidiOut] = None


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global _current_fake_output
	fake = FakeMidiOut()
	_current_fake_output = fake
	return fake


def current_fake_output () -> typing.Optional[FakeMidiOut]:

	return _current_fake_output


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output for all tests that need it."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


class FakeAudioOutput (beatkeeper.audio.AudioOutput):

	"""Audio output with a hand-driven clock.

	``now`` is the device time; tests move it forward explicitly so the
	scheduler's look-ahead arithmetic can be checked exactly.
	"""

	def __init__ (self, fail_resume: bool = False) -> None:

		self.now = 0.0
		self.fail_resume = fail_resume
		self.state = beatkeeper.audio.STATE_SUSPENDED
		self.resume_calls = 0
		self.sent: typing.List[mido.Message] = []
		self.closed = False

	@property
	def current_time (self) -> float:

		return self.now

	async def resume (self) -> None:

		self.resume_calls += 1

		if self.fail_resume:
			raise beatkeeper.audio.AudioResumeError("refused")

		self.state = beatkeeper.audio.STATE_RUNNING

	def send (self, message: mido.Message) -> None:

		self.sent.append(message)

	def close (self) -> None:

		self.closed = True
		self.state = beatkeeper.audio.STATE_CLOSED


class RecordingSynth:

	"""Synthesizer that records every trigger instead of playing it."""

	def __init__ (self, output: typing.Optional[beatkeeper.audio.AudioOutput] = None) -> None:

		self.output = output
		self.triggers: typing.List[typing.Tuple[str, float, float]] = []
		self.cancelled = 0
		self.closed = False

	def trigger (self, timbre: str, amplitude: float, at_time: float) -> None:

		self.triggers.append((timbre, amplitude, at_time))

	def times (self) -> typing.List[float]:

		"""Distinct trigger times in order."""

		result: typing.List[float] = []

		for _, _, at_time in self.triggers:
			if not result or result[-1] != at_time:
				result.append(at_time)

		return result

	def cancel_pending (self) -> None:

		self.cancelled += 1

	def close (self) -> None:

		self.closed = True


@pytest.fixture
def fake_output () -> FakeAudioOutput:

	return FakeAudioOutput()


@pytest.fixture
def recording_synth () -> RecordingSynth:

	return RecordingSynth()
