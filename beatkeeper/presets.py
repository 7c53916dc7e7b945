import dataclasses
import logging
import typing
import uuid

import beatkeeper.constants
import beatkeeper.pattern


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Preset:

	"""
	A named snapshot of a pattern and the beat structure it was built for.
	"""

	id: str
	name: str
	pattern: beatkeeper.pattern.Pattern
	subdivisions: int
	main_beats: int


def build_unique_preset_name (requested_name: str, existing_names: typing.Iterable[str]) -> str:

	"""Return ``requested_name`` made unique among ``existing_names``.

	Collisions are detected case-insensitively and resolved by appending
	" (2)", " (3)" and so on. The requested spelling is preserved. A blank
	request returns an empty string.

	Example:
		```python
		build_unique_preset_name("Rock", ["Rock", "Rock (2)", "jazz"])  # "Rock (3)"
		build_unique_preset_name("JAZZ", ["Rock", "Rock (2)", "jazz"])  # "JAZZ (2)"
		```
	"""

	name = requested_name.strip()

	if not name:
		return ""

	taken = {existing.lower() for existing in existing_names}

	if name.lower() not in taken:
		return name

	suffix = 2
	candidate = f"{name} ({suffix})"

	while candidate.lower() in taken:
		suffix += 1
		candidate = f"{name} ({suffix})"

	return candidate


def new_preset_id () -> str:

	"""Generate an opaque preset id."""

	return uuid.uuid4().hex


class PresetRegistry:

	"""
	In-memory collection of presets plus the current selection.

	Patterns are immutable values, so storing the caller's pattern is
	already an independent copy: later edits to the live pattern produce
	new values and never reach a stored preset.
	"""

	def __init__ (self, presets: typing.Optional[typing.Iterable[Preset]] = None, selected_id: str = beatkeeper.constants.NO_PRESET) -> None:

		"""Seed the registry, dropping a selection that names no preset."""

		self._presets: typing.List[Preset] = list(presets or [])
		self.selected_id = selected_id if self.get(selected_id) is not None else beatkeeper.constants.NO_PRESET

	def __len__ (self) -> int:

		return len(self._presets)

	def __iter__ (self) -> typing.Iterator[Preset]:

		return iter(list(self._presets))

	@property
	def presets (self) -> typing.List[Preset]:

		"""A copy of the stored presets in save order."""

		return list(self._presets)

	def names (self) -> typing.List[str]:

		return [preset.name for preset in self._presets]

	def get (self, preset_id: str) -> typing.Optional[Preset]:

		"""Find a preset by id."""

		for preset in self._presets:
			if preset.id == preset_id:
				return preset

		return None

	def save (self, requested_name: str, pattern: beatkeeper.pattern.Pattern, subdivisions: int, main_beats: int) -> typing.Optional[Preset]:

		"""
		Store a snapshot under a unique name and select it.

		Returns the new preset, or None when the requested name is blank.
		"""

		name = build_unique_preset_name(requested_name, self.names())

		if not name:
			return None

		preset = Preset(
			id = new_preset_id(),
			name = name,
			pattern = tuple(pattern),
			subdivisions = subdivisions,
			main_beats = main_beats
		)

		self._presets.append(preset)
		self.selected_id = preset.id

		logger.info(f"Saved preset {name!r}")

		return preset

	def load (self, preset_id: str) -> typing.Optional[Preset]:

		"""
		Select a preset and return it so the caller can apply it.

		The "no preset" sentinel clears the selection. Unknown ids leave the
		selection unchanged. Both return None.
		"""

		if preset_id == beatkeeper.constants.NO_PRESET:
			self.selected_id = beatkeeper.constants.NO_PRESET
			return None

		preset = self.get(preset_id)

		if preset is None:
			logger.debug(f"Preset {preset_id!r} not found")
			return None

		self.selected_id = preset.id

		return preset

	def delete (self, preset_id: str) -> bool:

		"""Remove a preset, clearing the selection if it was selected."""

		preset = self.get(preset_id)

		if preset is None:
			return False

		self._presets.remove(preset)

		if self.selected_id == preset_id:
			self.selected_id = beatkeeper.constants.NO_PRESET

		logger.info(f"Deleted preset {preset.name!r}")

		return True
