"""
Beatkeeper - an interactive, programmable metronome for Python.

A metronome whose measure is a row of slots - one per subdivision of every
beat - and each slot plays its own stack of drum sounds. Edit the pattern,
tempo or volume while it plays and the change is heard on the very next slot.
Sound is pure MIDI on the General MIDI drum channel, so it plays through any
drum machine, software instrument or the operating system's GM synth.

What it does:

- **Sample-accurate timing on a jittery loop.** A look-ahead scheduler
  polls every 25 ms and hands each sound to the output with its exact
  start time on the device clock, up to 120 ms ahead. A late poll never
  makes a late click.
- **Layered, per-slot sounds.** Twelve timbres (kick, snare, hi-hat,
  clap, cowbell, click ...) with per-layer volume. Downbeats and
  off-beats ("&", "e", "a") are labelled automatically.
- **Presets.** Save the current pattern and beat structure under a
  unique name, load it back, delete it.
- **Remembers everything.** Tempo, volume, pattern and presets are saved
  to disk a moment after each edit and restored on the next launch.
  Corrupt or hand-edited save files are repaired field by field.

Integration:

- **Terminal display.** ``metronome.display()`` shows a live status line
  with the beat row, the current slot and a pulse indicator.
- **OSC.** ``metronome.osc()`` accepts tempo, volume, meter, transport and
  preset commands and sends ``/beat`` and ``/pulse`` messages for lights
  or visuals.
- **WebSocket state feed.** ``metronome.web_ui()`` streams the live state
  as JSON to browser clients.

Minimal example:

```python
import beatkeeper
import beatkeeper.persistence

metronome = beatkeeper.Metronome(store=beatkeeper.persistence.FileBlobStore("~/.beatkeeper"))
metronome.set_bpm(96)
metronome.display()
metronome.play()
```

Package-level exports: ``Metronome``, ``MetronomeState``, ``Pattern``,
``Slot``, ``SoundLayer``, ``generate_pattern``, ``default_pattern``,
``Preset``, ``PresetRegistry``, ``build_unique_preset_name``,
``serialize``, ``deserialize``.
"""

import beatkeeper.codec
import beatkeeper.metronome
import beatkeeper.pattern
import beatkeeper.presets
import beatkeeper.state


Metronome = beatkeeper.metronome.Metronome
MetronomeState = beatkeeper.state.MetronomeState

Pattern = beatkeeper.pattern.Pattern
Slot = beatkeeper.pattern.Slot
SoundLayer = beatkeeper.pattern.SoundLayer
generate_pattern = beatkeeper.pattern.generate_pattern
default_pattern = beatkeeper.pattern.default_pattern

Preset = beatkeeper.presets.Preset
PresetRegistry = beatkeeper.presets.PresetRegistry
build_unique_preset_name = beatkeeper.presets.build_unique_preset_name

serialize = beatkeeper.codec.serialize
deserialize = beatkeeper.codec.deserialize
