"""Live terminal status line for metronome playback.

Shows the tempo, the meter, a row with one cell per slot and the slot being
heard highlighted, and a pulse indicator that lights for a moment on every
slot. Log messages scroll above the status line without disruption.

Enable it with a single call before ``play()``:

```python
metronome.display()
metronome.play()
```

The status line looks like::

	117.00 BPM  4x2  [1 & 2 & (3) & 4 &]  ●  Preset: Rock
"""

import logging
import sys
import typing

import beatkeeper.constants

if typing.TYPE_CHECKING:
	from beatkeeper.metronome import Metronome


_PULSE_GLYPHS = {
	beatkeeper.constants.VISUAL_SHAPE_CIRCLE: ("●", "○"),
	beatkeeper.constants.VISUAL_SHAPE_SQUARE: ("■", "□"),
}


class DisplayLogHandler (logging.Handler):

	"""Logging handler that clears and redraws the status line around log output.

	Installed by ``Display.start()`` and removed by ``Display.stop()``.
	"""

	def __init__ (self, display: "Display") -> None:

		super().__init__()
		self._display = display

	def emit (self, record: logging.LogRecord) -> None:

		"""Clear the status line, write the log message, then redraw."""

		try:
			self._display.clear_line()

			msg = self.format(record)
			sys.stderr.write(msg + "\n")
			sys.stderr.flush()

			self._display.draw()

		except Exception:
			self.handleError(record)


class Display:

	"""Live-updating terminal status line showing the metronome state.

	Reads tempo, meter, pattern, current slot and pulse flag from the
	``Metronome`` and renders them on a single stderr line. Hooked to the
	transport's ``"beat"``, ``"pulse"`` and ``"stop"`` events by the metronome.
	"""

	def __init__ (self, metronome: "Metronome") -> None:

		"""Store the metronome reference for reading playback state."""

		self._metronome = metronome
		self._active: bool = False
		self._handler: typing.Optional[DisplayLogHandler] = None
		self._saved_handlers: typing.List[logging.Handler] = []
		self._last_line: str = ""

	@property
	def active (self) -> bool:

		return self._active

	def start (self) -> None:

		"""Install the log handler and activate the display.

		Existing root logger handlers are saved and restored by ``stop()``.
		"""

		if self._active:
			return

		self._active = True

		root_logger = logging.getLogger()
		self._saved_handlers = list(root_logger.handlers)

		self._handler = DisplayLogHandler(self)

		if self._saved_handlers and self._saved_handlers[0].formatter:
			self._handler.setFormatter(self._saved_handlers[0].formatter)
		else:
			self._handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))

		root_logger.handlers.clear()
		root_logger.addHandler(self._handler)

	def stop (self) -> None:

		"""Clear the status line and restore original log handlers."""

		if not self._active:
			return

		self.clear_line()
		self._active = False

		root_logger = logging.getLogger()
		root_logger.handlers.clear()

		for handler in self._saved_handlers:
			root_logger.addHandler(handler)

		self._saved_handlers = []
		self._handler = None

	def update (self, *_: typing.Any) -> None:

		"""Rebuild and redraw the status line.

		Event arguments (slot index, pulse flag) are ignored; state is read
		directly from the metronome.
		"""

		if not self._active:
			return

		self._last_line = self._format_status()
		self.draw()

	def draw (self) -> None:

		"""Write the current status line to the terminal."""

		if not self._active or not self._last_line:
			return

		sys.stderr.write(f"\r\033[K{self._last_line}")
		sys.stderr.flush()

	def clear_line (self) -> None:

		"""Erase the status line."""

		if not self._active:
			return

		sys.stderr.write("\r\033[K")
		sys.stderr.flush()

	def _format_status (self) -> str:

		"""Build the status string from the current metronome state."""

		metronome = self._metronome
		config = metronome.state.config
		pattern = metronome.state.pattern

		parts: typing.List[str] = []

		parts.append(f"{config.bpm:.2f} BPM")
		parts.append(f"{config.main_beats}x{config.subdivisions}")

		if pattern:
			cells = []
			for index, slot in enumerate(pattern):
				if metronome.playing and index == metronome.current_beat:
					cells.append(f"({slot.label})")
				else:
					cells.append(slot.label)
			parts.append("[" + " ".join(cells) + "]")

		lit, unlit = _PULSE_GLYPHS.get(config.visual_shape, _PULSE_GLYPHS[beatkeeper.constants.VISUAL_SHAPE_CIRCLE])
		parts.append(lit if metronome.visual_pulse else unlit)

		selected = metronome.state.presets.get(metronome.state.presets.selected_id)

		if selected is not None:
			parts.append(f"Preset: {selected.name}")

		if not metronome.playing:
			parts.append("(stopped)")

		if metronome.error:
			parts.append(f"Error: {metronome.error}")

		return "  ".join(parts)
