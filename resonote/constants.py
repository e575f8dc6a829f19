"""Timing, tuning and envelope constants.

All durations are in **milliseconds** unless the name says otherwise.  The
engine works on a single millisecond timeline: recorded offsets, scheduling
delays and envelope windows all share the same unit.

Tuning is 12-tone equal temperament anchored on the reference A:

- `REFERENCE_PITCH = 69`: pitch number of the reference A
- `REFERENCE_FREQUENCY = 440.0`: its frequency in Hz
"""

# Tuning

REFERENCE_PITCH = 69
REFERENCE_FREQUENCY = 440.0

# Voice envelope

PEAK_AMPLITUDE = 0.3
ATTACK_MS = 50
RELEASE_TIME_CONSTANT_MS = 100
HARD_STOP_DELAY_MS = 200

# Audio device

SAMPLE_RATE = 44100
BLOCK_SIZE = 512

# Recording

RECORDING_CEILING_MS = 15000

# Playback

PERFORMANCE_NOTE_MS = 1500
MOTIF_NOTE_MS = 500
MOTIF_SPACING_MS = 200
MOTIF_BASE_PITCH = 55
HIGHLIGHT_FLASH_MS = 150
PLAYBACK_TRAILING_MARGIN_MS = 500

# Terminal key taps have no key-up, so each tap holds for this long.

KEY_TAP_HOLD_MS = 300

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


def note_name (pitch_id: int) -> str:

	"""Convert a pitch number to a human-readable name.

	Examples: 60 → ``"C4"``, 61 → ``"C#4"``, 69 → ``"A4"``.
	"""

	return f"{NOTE_NAMES[pitch_id % 12]}{(pitch_id // 12) - 1}"
