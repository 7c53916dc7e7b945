"""Persisted state codec.

Serializes the whole metronome configuration - transport settings, the live
pattern, presets and the preset selection - to a versioned JSON object, and
parses it back from untrusted input.

Parsing is deliberately asymmetric:

- Malformed JSON, a non-object top level, or an unrecognised ``version``
  rejects the whole blob (``deserialize`` returns None).
- Everything else is repaired field by field. Out-of-range numbers are
  clamped, invalid entries are dropped, and missing values fall back to
  defaults. A partially corrupt save still loads as a usable configuration.

Wire format (schema version 1)::

	{
		"version": 1,
		"bpm": 117,
		"masterVolume": 0.7,
		"visualShape": "circle",
		"subdivisionsPerBeat": 2,
		"numMainBeats": 4,
		"beatPatterns": [{"beat": "1", "isMainBeat": true, "sounds": [{"type": "kick", "volume": 1.0}], "color": "bg-blue-500"}],
		"presets": [{"id": "...", "name": "Rock", "beatPatterns": [], "subdivisionsPerBeat": 2, "numMainBeats": 4}],
		"selectedPresetId": ""
	}
"""

import dataclasses
import json
import logging
import math
import typing

import beatkeeper.constants
import beatkeeper.pattern
import beatkeeper.presets


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class PersistedState:

	"""
	Everything written to and restored from the blob store.
	"""

	version: int = beatkeeper.constants.PERSISTENCE_VERSION
	bpm: float = beatkeeper.constants.DEFAULT_BPM
	master_volume: float = beatkeeper.constants.DEFAULT_MASTER_VOLUME
	visual_shape: str = beatkeeper.constants.DEFAULT_VISUAL_SHAPE
	subdivisions: int = beatkeeper.constants.DEFAULT_SUBDIVISIONS
	main_beats: int = beatkeeper.constants.DEFAULT_MAIN_BEATS
	pattern: beatkeeper.pattern.Pattern = dataclasses.field(default_factory=beatkeeper.pattern.default_pattern)
	presets: typing.List[beatkeeper.presets.Preset] = dataclasses.field(default_factory=list)
	selected_preset_id: str = beatkeeper.constants.NO_PRESET


# ─── Encoding ────────────────────────────────────────────────────────

def _encode_pattern (pattern: beatkeeper.pattern.Pattern) -> typing.List[typing.Dict[str, typing.Any]]:

	return [
		{
			"beat": slot.label,
			"isMainBeat": slot.is_downbeat,
			"sounds": [{"type": sound.timbre, "volume": sound.gain} for sound in slot.sounds],
			"color": slot.color
		}
		for slot in pattern
	]


def _encode_preset (preset: beatkeeper.presets.Preset) -> typing.Dict[str, typing.Any]:

	return {
		"id": preset.id,
		"name": preset.name,
		"beatPatterns": _encode_pattern(preset.pattern),
		"subdivisionsPerBeat": preset.subdivisions,
		"numMainBeats": preset.main_beats
	}


def to_wire (state: PersistedState) -> typing.Dict[str, typing.Any]:

	"""Project a state onto its wire dict, always stamping the current schema version."""

	return {
		"version": beatkeeper.constants.PERSISTENCE_VERSION,
		"bpm": state.bpm,
		"masterVolume": state.master_volume,
		"visualShape": state.visual_shape,
		"subdivisionsPerBeat": state.subdivisions,
		"numMainBeats": state.main_beats,
		"beatPatterns": _encode_pattern(state.pattern),
		"presets": [_encode_preset(preset) for preset in state.presets],
		"selectedPresetId": state.selected_preset_id
	}


def serialize (state: PersistedState) -> str:

	"""Serialize a state to its JSON blob."""

	return json.dumps(to_wire(state))


# ─── Decoding ────────────────────────────────────────────────────────

def _is_number (value: typing.Any) -> bool:

	"""True for ints and finite floats. Booleans are not numbers here.

	Ints are always finite, and may be too large to convert to float, so
	only floats go through ``math.isfinite``. Oversized ints are clamped later.
	"""

	if isinstance(value, bool) or not isinstance(value, (int, float)):
		return False

	if isinstance(value, int):
		return True

	return math.isfinite(value)


def _is_blank (value: typing.Any) -> bool:

	return not isinstance(value, str) or not value.strip()


def _parse_sound (value: typing.Any) -> typing.Optional[beatkeeper.pattern.SoundLayer]:

	if not isinstance(value, dict):
		return None

	timbre = value.get("type")
	volume = value.get("volume")

	if not isinstance(timbre, str) or timbre not in beatkeeper.constants.SOUND_TYPE_SET:
		return None

	if not _is_number(volume):
		return None

	return beatkeeper.pattern.SoundLayer(timbre=timbre, gain=beatkeeper.pattern.clamp_volume(volume))


def _parse_slot (value: typing.Any) -> typing.Optional[beatkeeper.pattern.Slot]:

	if not isinstance(value, dict):
		return None

	label = value.get("beat")
	is_downbeat = value.get("isMainBeat")
	sounds = value.get("sounds")
	color = value.get("color")

	if not isinstance(label, str) or not isinstance(is_downbeat, bool) or not isinstance(sounds, list):
		return None

	parsed_sounds = [sound for sound in (_parse_sound(item) for item in sounds) if sound is not None]

	if not parsed_sounds:
		parsed_sounds.append(beatkeeper.pattern.default_sound())

	return beatkeeper.pattern.Slot(
		label = label,
		is_downbeat = is_downbeat,
		sounds = tuple(parsed_sounds),
		color = beatkeeper.constants.DEFAULT_COLOR if _is_blank(color) else color
	)


def _parse_pattern (value: typing.Any, main_beats: int, subdivisions: int) -> beatkeeper.pattern.Pattern:

	"""Parse a slot list, regenerating a blank measure if nothing survives."""

	slots: typing.List[beatkeeper.pattern.Slot] = []

	if isinstance(value, list):
		slots = [slot for slot in (_parse_slot(item) for item in value) if slot is not None]

	if not slots:
		return beatkeeper.pattern.generate_pattern(main_beats, subdivisions)

	return tuple(slots)


def _parse_subdivisions (value: typing.Any) -> int:

	if _is_number(value):
		return beatkeeper.pattern.clamp_subdivisions(value)

	return beatkeeper.constants.DEFAULT_SUBDIVISIONS


def _parse_main_beats (value: typing.Any) -> int:

	if _is_number(value):
		return beatkeeper.pattern.clamp_main_beats(value)

	return beatkeeper.constants.DEFAULT_MAIN_BEATS


def _parse_preset (value: typing.Any) -> typing.Optional[beatkeeper.presets.Preset]:

	if not isinstance(value, dict):
		return None

	preset_id = value.get("id")
	name = value.get("name")

	if _is_blank(preset_id) or _is_blank(name):
		return None

	subdivisions = _parse_subdivisions(value.get("subdivisionsPerBeat"))
	main_beats = _parse_main_beats(value.get("numMainBeats"))

	return beatkeeper.presets.Preset(
		id = preset_id,
		name = name,
		pattern = _parse_pattern(value.get("beatPatterns"), main_beats, subdivisions),
		subdivisions = subdivisions,
		main_beats = main_beats
	)


def from_wire (data: typing.Any) -> typing.Optional[PersistedState]:

	"""Sanitize an already-decoded wire object. See ``deserialize``."""

	if not isinstance(data, dict):
		return None

	if "version" in data:
		version = data["version"]
		if not _is_number(version) or version != beatkeeper.constants.PERSISTENCE_VERSION:
			logger.warning(f"Ignoring saved state with unsupported version {version!r}")
			return None

	bpm = data.get("bpm")
	master_volume = data.get("masterVolume")
	subdivisions = _parse_subdivisions(data.get("subdivisionsPerBeat"))
	main_beats = _parse_main_beats(data.get("numMainBeats"))

	presets: typing.List[beatkeeper.presets.Preset] = []

	if isinstance(data.get("presets"), list):
		presets = [preset for preset in (_parse_preset(item) for item in data["presets"]) if preset is not None]

	selected_preset_id = data.get("selectedPresetId")

	if not isinstance(selected_preset_id, str) or not any(preset.id == selected_preset_id for preset in presets):
		selected_preset_id = beatkeeper.constants.NO_PRESET

	return PersistedState(
		version = beatkeeper.constants.PERSISTENCE_VERSION,
		bpm = beatkeeper.pattern.clamp_bpm(bpm) if _is_number(bpm) else beatkeeper.constants.DEFAULT_BPM,
		master_volume = beatkeeper.pattern.clamp_volume(master_volume) if _is_number(master_volume) else beatkeeper.constants.DEFAULT_MASTER_VOLUME,
		visual_shape = beatkeeper.constants.VISUAL_SHAPE_SQUARE if data.get("visualShape") == beatkeeper.constants.VISUAL_SHAPE_SQUARE else beatkeeper.constants.DEFAULT_VISUAL_SHAPE,
		subdivisions = subdivisions,
		main_beats = main_beats,
		pattern = _parse_pattern(data.get("beatPatterns"), main_beats, subdivisions),
		presets = presets,
		selected_preset_id = selected_preset_id
	)


def deserialize (blob: typing.Optional[typing.Union[str, bytes]]) -> typing.Optional[PersistedState]:

	"""Parse a saved blob into a fully valid state, or None.

	Never raises. Returns None for empty input, malformed JSON, a non-object
	top level, or a ``version`` other than the supported one. Every other
	field is clamped or defaulted individually.
	"""

	if not blob:
		return None

	try:
		data = json.loads(blob)
	except (ValueError, TypeError, RecursionError) as exc:
		logger.warning(f"Ignoring unreadable saved state: {exc}")
		return None

	return from_wire(data)
