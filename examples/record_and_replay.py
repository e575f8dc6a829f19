import asyncio
import logging

import resonote
import resonote.archive

logging.basicConfig(level=logging.INFO)

# (pitch, seconds held, seconds of silence after) - a rising C major arpeggio.
PHRASE = [(60, 0.25, 0.05), (64, 0.25, 0.05), (67, 0.25, 0.05), (72, 0.6, 0.0)]


async def main () -> None:

	# Scripted key presses, recorded and replayed through the same synth.
	studio = resonote.Studio(resonote.LoopTimeline(), archive=resonote.archive.MemoryArchive())

	studio.toggle_recording()

	for pitch, held, gap in PHRASE:
		studio.press(pitch)
		await asyncio.sleep(held)
		studio.release(pitch)
		await asyncio.sleep(gap)

	studio.toggle_recording()

	take = studio.performances()[-1]
	logging.info(f"Recorded {take.display_name}: {[(e.offset_ms, e.pitch_id, e.kind.value) for e in take.events]}")

	await asyncio.sleep(0.5)

	studio.play_performance(take.id)
	await asyncio.sleep(take.duration_ms / 1000 + 1.0)

	studio.export_performance(take.id, "take.mid")
	studio.close()


if __name__ == "__main__":
	asyncio.run(main())
