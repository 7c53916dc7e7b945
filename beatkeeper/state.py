import dataclasses
import logging
import typing

import beatkeeper.codec
import beatkeeper.constants
import beatkeeper.event_emitter
import beatkeeper.pattern
import beatkeeper.presets


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class TransportConfig:

	"""
	Global playback parameters. Values are kept in range by ``MetronomeState``.
	"""

	bpm: float = beatkeeper.constants.DEFAULT_BPM
	subdivisions: int = beatkeeper.constants.DEFAULT_SUBDIVISIONS
	main_beats: int = beatkeeper.constants.DEFAULT_MAIN_BEATS
	master_volume: float = beatkeeper.constants.DEFAULT_MASTER_VOLUME
	visual_shape: str = beatkeeper.constants.DEFAULT_VISUAL_SHAPE


class MetronomeState:

	"""
	The live, mutable configuration shared by user edits and the scheduler.

	The scheduler holds a reference to this object and reads ``config`` and
	``pattern`` afresh on every tick, so any edit made here is heard on the
	next scheduled event without restarting playback.

	Out-of-range input is clamped silently. Every mutation emits a
	``"change"`` event, which the persistence layer uses to schedule a save.
	"""

	def __init__ (
		self,
		config: typing.Optional[TransportConfig] = None,
		pattern: typing.Optional[beatkeeper.pattern.Pattern] = None,
		presets: typing.Optional[beatkeeper.presets.PresetRegistry] = None
	) -> None:

		"""Start from the given values, or from the first-launch defaults."""

		self.config = config if config is not None else TransportConfig()
		self.pattern: beatkeeper.pattern.Pattern = pattern if pattern is not None else beatkeeper.pattern.default_pattern()
		self.presets = presets if presets is not None else beatkeeper.presets.PresetRegistry()
		self.events = beatkeeper.event_emitter.EventEmitter()

	def _changed (self) -> None:

		self.events.emit("change")


	# ─── Transport settings ──────────────────────────────────────────

	def set_bpm (self, bpm: float) -> None:

		"""Change the tempo. Takes effect on the next scheduled event."""

		self.config.bpm = beatkeeper.pattern.clamp_bpm(bpm)
		logger.debug(f"BPM set to {self.config.bpm:.2f}")
		self._changed()

	def set_master_volume (self, volume: float) -> None:

		self.config.master_volume = beatkeeper.pattern.clamp_volume(volume)
		self._changed()

	def set_visual_shape (self, shape: str) -> None:

		"""Select the pulse indicator shape. Anything but "square" means "circle"."""

		if shape == beatkeeper.constants.VISUAL_SHAPE_SQUARE:
			self.config.visual_shape = beatkeeper.constants.VISUAL_SHAPE_SQUARE
		else:
			self.config.visual_shape = beatkeeper.constants.VISUAL_SHAPE_CIRCLE

		self._changed()

	def set_subdivisions (self, subdivisions: int) -> None:

		"""Change slots per beat. Regenerates the pattern, discarding slot edits."""

		self.config.subdivisions = beatkeeper.pattern.clamp_subdivisions(subdivisions)
		self.pattern = beatkeeper.pattern.generate_pattern(self.config.main_beats, self.config.subdivisions)
		self._changed()

	def set_main_beats (self, main_beats: int) -> None:

		"""Change beats per measure. Regenerates the pattern, discarding slot edits."""

		self.config.main_beats = beatkeeper.pattern.clamp_main_beats(main_beats)
		self.pattern = beatkeeper.pattern.generate_pattern(self.config.main_beats, self.config.subdivisions)
		self._changed()


	# ─── Pattern edits ───────────────────────────────────────────────
	#
	# Each edit swaps the handle to a new pattern value.

	def _set_pattern (self, pattern: beatkeeper.pattern.Pattern) -> None:

		if pattern is self.pattern:
			return

		self.pattern = pattern
		self._changed()

	def add_sound (self, slot_index: int) -> None:

		self._set_pattern(beatkeeper.pattern.add_sound(self.pattern, slot_index))

	def remove_sound (self, slot_index: int, sound_index: int) -> None:

		self._set_pattern(beatkeeper.pattern.remove_sound(self.pattern, slot_index, sound_index))

	def set_sound_timbre (self, slot_index: int, sound_index: int, timbre: str) -> None:

		self._set_pattern(beatkeeper.pattern.set_sound_timbre(self.pattern, slot_index, sound_index, timbre))

	def set_sound_gain (self, slot_index: int, sound_index: int, gain: float) -> None:

		self._set_pattern(beatkeeper.pattern.set_sound_gain(self.pattern, slot_index, sound_index, gain))

	def set_slot_color (self, slot_index: int, color: str) -> None:

		self._set_pattern(beatkeeper.pattern.set_slot_color(self.pattern, slot_index, color))


	# ─── Presets ─────────────────────────────────────────────────────

	def save_preset (self, name: str) -> typing.Optional[beatkeeper.presets.Preset]:

		"""Snapshot the live pattern and beat structure as a new selected preset."""

		preset = self.presets.save(name, self.pattern, self.config.subdivisions, self.config.main_beats)

		if preset is not None:
			self._changed()

		return preset

	def load_preset (self, preset_id: str) -> bool:

		"""Apply a preset to the live state.

		The "no preset" sentinel only clears the selection. Unknown ids change
		nothing. Returns True when a preset was applied.
		"""

		previous_selection = self.presets.selected_id
		preset = self.presets.load(preset_id)

		if preset is None:
			if self.presets.selected_id != previous_selection:
				self._changed()
			return False

		self.pattern = tuple(preset.pattern)
		self.config.subdivisions = preset.subdivisions
		self.config.main_beats = preset.main_beats

		logger.info(f"Loaded preset {preset.name!r}")
		self._changed()

		return True

	def delete_preset (self, preset_id: str) -> bool:

		removed = self.presets.delete(preset_id)

		if removed:
			self._changed()

		return removed


	# ─── Persistence ─────────────────────────────────────────────────

	def snapshot (self) -> beatkeeper.codec.PersistedState:

		"""Capture everything that is persisted."""

		return beatkeeper.codec.PersistedState(
			version = beatkeeper.constants.PERSISTENCE_VERSION,
			bpm = self.config.bpm,
			master_volume = self.config.master_volume,
			visual_shape = self.config.visual_shape,
			subdivisions = self.config.subdivisions,
			main_beats = self.config.main_beats,
			pattern = self.pattern,
			presets = self.presets.presets,
			selected_preset_id = self.presets.selected_id
		)

	def apply (self, restored: beatkeeper.codec.PersistedState) -> None:

		"""Replace the live state with a restored one."""

		self.config = TransportConfig(
			bpm = restored.bpm,
			subdivisions = restored.subdivisions,
			main_beats = restored.main_beats,
			master_volume = restored.master_volume,
			visual_shape = restored.visual_shape
		)
		self.pattern = tuple(restored.pattern)
		self.presets = beatkeeper.presets.PresetRegistry(restored.presets, restored.selected_preset_id)

		self._changed()
