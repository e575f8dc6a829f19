import asyncio
import logging

import resonote

logging.basicConfig(level=logging.INFO)

TOUR = ["SuperMarioJump", "SonicRing", "FrozenElsaArp", "WednesdaySnap", "EmailSent"]

# Each motif gets this long before the next one replaces it.
SECONDS_PER_MOTIF = 2.0


async def main () -> None:

	studio = resonote.Studio(resonote.LoopTimeline())

	logging.info(f"Library holds {len(studio.catalog)} motifs in {len(studio.catalog.genres())} genres")

	for motif_id in TOUR:
		motif = studio.catalog.get(motif_id)
		logging.info(f"{motif.name} ({motif.genre}): {list(motif.offsets)}")
		studio.play_motif(motif_id)
		await asyncio.sleep(SECONDS_PER_MOTIF)

	studio.close()


if __name__ == "__main__":
	asyncio.run(main())
