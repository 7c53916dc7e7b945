import logging

import beatkeeper
import beatkeeper.constants.gm_drums as gm_drums

logging.basicConfig(level=logging.INFO)

START_BPM = 90
TARGET_BPM = 130
STEP_BPM = 2

# Three beats, triplet feel. The pattern is regenerated whenever the meter changes,
# so edit slots after setting it.
metronome = beatkeeper.Metronome()
metronome.set_main_beats(3)
metronome.set_subdivisions(3)
metronome.set_bpm(START_BPM)

# Kick on the one, a soft cowbell on every other downbeat, hi-hat on the triplets.
metronome.state.set_sound_timbre(0, 0, "kick")
metronome.state.add_sound(0)
metronome.state.set_sound_timbre(0, 1, "hihat")
metronome.state.set_sound_gain(0, 1, 0.5)

for slot_index, slot in enumerate(metronome.state.pattern):
	if slot.is_downbeat and slot_index > 0:
		metronome.state.set_sound_timbre(slot_index, 0, "cowbell")
		metronome.state.set_sound_gain(slot_index, 0, 0.4)
	elif not slot.is_downbeat:
		metronome.state.set_sound_timbre(slot_index, 0, "hihat")

metronome.save_preset("Triplet trainer")

# Speed up a little at the top of every measure until the target tempo is reached.
def speed_up (beat_index: int) -> None:

	if beat_index == 0 and metronome.bpm < TARGET_BPM:
		metronome.set_bpm(min(TARGET_BPM, metronome.bpm + STEP_BPM))

metronome.on_event("beat", speed_up)

logging.info(f"Kick is GM note {gm_drums.KICK_1}")

metronome.display()
metronome.play()
