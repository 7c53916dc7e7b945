"""Beat pattern model.

A pattern describes one measure as a flat sequence of slots - one slot per
subdivision tick - each carrying an ordered stack of sound layers. Slots and
layers are frozen, so every edit below returns a new pattern and leaves the
old value untouched. The scheduler can keep reading whatever pattern it last
picked up while an edit swaps in a new one.
"""

import dataclasses
import typing

import beatkeeper.constants


SUBDIVISION_LABELS: typing.Dict[int, typing.Tuple[str, ...]] = {
	1: ("",),
	2: ("", "&"),
	3: ("", "&", "a"),
	4: ("", "e", "&", "a"),
}

FALLBACK_LABEL = "&"


@dataclasses.dataclass(frozen=True)
class SoundLayer:

	"""
	One sound triggered on a slot.
	"""

	timbre: str
	gain: float


@dataclasses.dataclass(frozen=True)
class Slot:

	"""
	One subdivision tick within a measure.
	"""

	label: str
	is_downbeat: bool
	sounds: typing.Tuple[SoundLayer, ...]
	color: str = beatkeeper.constants.DEFAULT_COLOR


Pattern = typing.Tuple[Slot, ...]


def clamp_subdivisions (value: float) -> int:

	"""Clamp a subdivision count into the supported 1-4 range."""

	return int(round(max(beatkeeper.constants.MIN_SUBDIVISIONS, min(beatkeeper.constants.MAX_SUBDIVISIONS, value))))


def clamp_main_beats (value: float) -> int:

	"""Clamp a main beat count into the supported 1-16 range."""

	return int(round(max(beatkeeper.constants.MIN_MAIN_BEATS, min(beatkeeper.constants.MAX_MAIN_BEATS, value))))


def clamp_bpm (value: float) -> float:

	"""Clamp a tempo into the supported 0.1-300 BPM range."""

	return float(max(beatkeeper.constants.MIN_BPM, min(beatkeeper.constants.MAX_BPM, value)))


def clamp_volume (value: float) -> float:

	"""Clamp a gain into 0-1."""

	return float(max(beatkeeper.constants.MIN_VOLUME, min(beatkeeper.constants.MAX_VOLUME, value)))


def default_sound () -> SoundLayer:

	"""The layer given to freshly generated slots."""

	return SoundLayer(
		timbre = beatkeeper.constants.DEFAULT_SOUND_TYPE,
		gain = beatkeeper.constants.DEFAULT_SOUND_VOLUME
	)


def generate_pattern (main_beats: int, subdivisions: int) -> Pattern:

	"""Build a blank measure of ``main_beats × subdivisions`` slots.

	The first slot of each beat is the downbeat and is labelled with its
	1-based beat number. The remaining slots take their counting syllable
	("e", "&", "a") from the label set for the subdivision count.

	Parameters:
		main_beats: Number of beats in the measure.
		subdivisions: Slots per beat. Clamped into 1-4 before use.

	Example:
		```python
		[slot.label for slot in generate_pattern(2, 4)]
		# ['1', 'e', '&', 'a', '2', 'e', '&', 'a']
		```
	"""

	safe_subdivisions = clamp_subdivisions(subdivisions)
	labels = SUBDIVISION_LABELS.get(safe_subdivisions, SUBDIVISION_LABELS[2])

	slots: typing.List[Slot] = []

	for beat in range(1, int(main_beats) + 1):

		for position in range(safe_subdivisions):

			is_downbeat = position == 0

			if is_downbeat:
				label = str(beat)
			elif position < len(labels):
				label = labels[position]
			else:
				label = FALLBACK_LABEL

			slots.append(Slot(
				label = label,
				is_downbeat = is_downbeat,
				sounds = (default_sound(),),
				color = beatkeeper.constants.DEFAULT_COLOR
			))

	return tuple(slots)


def default_pattern () -> Pattern:

	"""The groove loaded on first launch: kick on 1, snare on 3, eighth-note hi-hats."""

	hihat = SoundLayer("hihat", 0.6)
	slots = list(generate_pattern(beatkeeper.constants.DEFAULT_MAIN_BEATS, beatkeeper.constants.DEFAULT_SUBDIVISIONS))

	for index, slot in enumerate(slots):
		slots[index] = dataclasses.replace(slot, sounds=(hihat,))

	slots[0] = dataclasses.replace(slots[0], sounds=(SoundLayer("kick", 1.0), hihat))
	slots[4] = dataclasses.replace(slots[4], sounds=(SoundLayer("snare", 0.9), hihat))

	return tuple(slots)


def _in_range (items: typing.Sequence[typing.Any], index: int) -> bool:

	return 0 <= index < len(items)


def _replace_slot (pattern: Pattern, slot_index: int, slot: Slot) -> Pattern:

	return pattern[:slot_index] + (slot,) + pattern[slot_index + 1:]


def add_sound (pattern: Pattern, slot_index: int) -> Pattern:

	"""Append a default click layer to a slot."""

	if not _in_range(pattern, slot_index):
		return pattern

	slot = pattern[slot_index]

	return _replace_slot(pattern, slot_index, dataclasses.replace(slot, sounds=slot.sounds + (default_sound(),)))


def remove_sound (pattern: Pattern, slot_index: int, sound_index: int) -> Pattern:

	"""Remove one layer from a slot.

	Refused (the pattern is returned unchanged) when it would leave the slot
	without any sound.
	"""

	if not _in_range(pattern, slot_index):
		return pattern

	slot = pattern[slot_index]

	if len(slot.sounds) <= 1 or not _in_range(slot.sounds, sound_index):
		return pattern

	sounds = slot.sounds[:sound_index] + slot.sounds[sound_index + 1:]

	return _replace_slot(pattern, slot_index, dataclasses.replace(slot, sounds=sounds))


def _replace_sound (pattern: Pattern, slot_index: int, sound_index: int, **changes: typing.Any) -> Pattern:

	if not _in_range(pattern, slot_index):
		return pattern

	slot = pattern[slot_index]

	if not _in_range(slot.sounds, sound_index):
		return pattern

	sound = dataclasses.replace(slot.sounds[sound_index], **changes)
	sounds = slot.sounds[:sound_index] + (sound,) + slot.sounds[sound_index + 1:]

	return _replace_slot(pattern, slot_index, dataclasses.replace(slot, sounds=sounds))


def set_sound_timbre (pattern: Pattern, slot_index: int, sound_index: int, timbre: str) -> Pattern:

	"""Change which sound a layer plays."""

	if timbre not in beatkeeper.constants.SOUND_TYPE_SET:
		raise ValueError(f"Unknown sound type {timbre!r}")

	return _replace_sound(pattern, slot_index, sound_index, timbre=timbre)


def set_sound_gain (pattern: Pattern, slot_index: int, sound_index: int, gain: float) -> Pattern:

	"""Change a layer's volume (clamped to 0-1)."""

	return _replace_sound(pattern, slot_index, sound_index, gain=clamp_volume(gain))


def set_slot_color (pattern: Pattern, slot_index: int, color: str) -> Pattern:

	"""Change the colour tag of a slot."""

	if not _in_range(pattern, slot_index):
		return pattern

	return _replace_slot(pattern, slot_index, dataclasses.replace(pattern[slot_index], color=color))
