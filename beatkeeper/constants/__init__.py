"""Constants for beatkeeper.

This package contains:

- ``beatkeeper.constants`` (this module) - sound names, value ranges, defaults and transport timing
- ``beatkeeper.constants.gm_drums`` - General MIDI drum notes used by the MIDI synthesizer

Ranges are inclusive. Anything outside them is clamped, never rejected.
"""

import typing


# ─── Sounds ──────────────────────────────────────────────────────────

SOUND_TYPES: typing.Tuple[str, ...] = (
	"kick",
	"snare",
	"hihat",
	"tom",
	"clap",
	"click",
	"drum",
	"chime",
	"wood",
	"cowbell",
	"bell",
	"beep",
)

SOUND_TYPE_SET: typing.FrozenSet[str] = frozenset(SOUND_TYPES)

SOUND_LABELS: typing.Dict[str, str] = {
	"kick": "Kick (BD)",
	"snare": "Snare (SD)",
	"hihat": "Hi-Hat (HH)",
	"tom": "Tom",
	"clap": "Clap",
	"click": "Click",
	"drum": "Drum",
	"chime": "Chime",
	"wood": "Wood",
	"cowbell": "Cowbell",
	"bell": "Bell",
	"beep": "Beep",
}

DEFAULT_SOUND_TYPE = "click"
DEFAULT_SOUND_VOLUME = 0.7


# ─── Slot colours ────────────────────────────────────────────────────

DEFAULT_COLOR = "bg-blue-500"

COLOR_OPTIONS: typing.Dict[str, str] = {
	"bg-blue-500": "Blue",
	"bg-red-500": "Red",
	"bg-green-500": "Green",
	"bg-yellow-500": "Yellow",
	"bg-purple-500": "Purple",
	"bg-gray-400": "Gray",
	"bg-orange-500": "Orange",
	"bg-pink-500": "Pink",
}


# ─── Visual shapes ───────────────────────────────────────────────────

VISUAL_SHAPE_CIRCLE = "circle"
VISUAL_SHAPE_SQUARE = "square"
VISUAL_SHAPES: typing.Tuple[str, ...] = (VISUAL_SHAPE_CIRCLE, VISUAL_SHAPE_SQUARE)


# ─── Ranges and defaults ─────────────────────────────────────────────

MIN_BPM = 0.1
MAX_BPM = 300.0
MIN_SUBDIVISIONS = 1
MAX_SUBDIVISIONS = 4
MIN_MAIN_BEATS = 1
MAX_MAIN_BEATS = 16
MIN_VOLUME = 0.0
MAX_VOLUME = 1.0

DEFAULT_BPM = 117.0
DEFAULT_MASTER_VOLUME = 0.7
DEFAULT_VISUAL_SHAPE = VISUAL_SHAPE_CIRCLE
DEFAULT_SUBDIVISIONS = 2
DEFAULT_MAIN_BEATS = 4

# Gain applied on top of master × layer volume before it reaches the synthesizer.
MASTER_OUTPUT_BOOST = 2.5

# Below this amplitude a trigger is treated as silent.
SILENCE_THRESHOLD = 0.0001


# ─── Transport timing (seconds) ──────────────────────────────────────

TICK_INTERVAL = 0.025
SCHEDULE_AHEAD_TIME = 0.12
START_OFFSET = 0.03
VISUAL_PULSE_DURATION = 0.05


# ─── Persistence ─────────────────────────────────────────────────────

PERSISTENCE_VERSION = 1
STORAGE_KEY = "beatkeeper/state/v1"
PERSIST_DEBOUNCE = 0.15

# Sentinel for "no preset selected".
NO_PRESET = ""
