"""General MIDI drum notes for the metronome's sound names.

Standard MIDI percussion assignments for channel 10 (0-indexed channel 9).
Each of the twelve sound names maps to the GM note that comes closest to its
timbre, so any GM-compatible drum machine, sampler or DAW plays a recognisable
kit without extra configuration::

	import beatkeeper.constants.gm_drums

	note = beatkeeper.constants.gm_drums.SOUND_NOTE_MAP["snare"]   # 38
"""

import typing


GM_DRUM_CHANNEL = 9


# ─── Individual note constants ───────────────────────────────────────
#
# Only the subset of the GM Level 1 key map (notes 27-87) that the
# metronome sounds use.

METRONOME_CLICK = 33
METRONOME_BELL = 34
KICK_1 = 36
SNARE_1 = 38
HAND_CLAP = 39
HI_HAT_CLOSED = 42
LOW_TOM = 45
LOW_MID_TOM = 47
COWBELL = 56
HIGH_WOODBLOCK = 76
OPEN_TRIANGLE = 81
BELL_TREE = 84


# ─── Sound name map ──────────────────────────────────────────────────

SOUND_NOTE_MAP: typing.Dict[str, int] = {
	"kick": KICK_1,
	"snare": SNARE_1,
	"hihat": HI_HAT_CLOSED,
	"tom": LOW_MID_TOM,
	"clap": HAND_CLAP,
	"click": METRONOME_CLICK,
	"drum": LOW_TOM,
	"chime": BELL_TREE,
	"wood": HIGH_WOODBLOCK,
	"cowbell": COWBELL,
	"bell": METRONOME_BELL,
	"beep": OPEN_TRIANGLE,
}
