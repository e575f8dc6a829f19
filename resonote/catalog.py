"""Built-in motif library.

A motif is a short list of pitch offsets played at fixed spacing above
``MOTIF_BASE_PITCH`` (see :func:`resonote.playback.motif_events`).  The
library holds ten named motifs plus 110 generated tones.
"""

import dataclasses
import typing


ALL_GENRES = "All"


@dataclasses.dataclass (frozen=True)
class Motif:

	"""One library entry."""

	name: str
	genre: str
	offsets: typing.Tuple[int, ...]
	duration: float
	icon: str = "fa-music"
	color: str = "#333"

	@property
	def motif_id (self) -> str:

		"""Name with whitespace removed, e.g. ``"SuperMarioJump"``."""

		return "".join(self.name.split())


_NAMED: typing.List[Motif] = [
	# Gaming classics
	Motif("Super Mario Jump", "Gaming Classics", (0, 5, 12), 1, "fa-gamepad", "#E52521"),
	Motif("Pikachu Pika!", "Gaming Classics", (12, 14, 12), 0.8, "fa-bolt", "#FFDE00"),
	Motif("Sonic Ring", "Gaming Classics", (0, 4, 7, 12, 16, 24), 1, "fa-circle", "#0054FF"),
	Motif("Zelda Secret", "Gaming Classics", (5, 4, 1, 6, 5, 1, 8, 7), 3, "fa-shield-halved", "#4CAF50"),

	# Viral pop
	Motif("Frozen Elsa Arp", "Viral Pop Snippets", (0, 7, 12, 16), 4, "fa-snowflake", "#81D4FA"),
	Motif("Wednesday Snap", "Viral Pop Snippets", (0, 1, 0), 1, "fa-hand", "#212121"),
	Motif("Encanto Sun", "Viral Pop Snippets", (0, 3, 7, 10, 12), 3, "fa-sun", "#FFB300"),

	# UI and minimalist
	Motif("Banking Success", "Minimalist UI", (0, 12, 15), 2, "fa-wallet", "#2E7D32"),
	Motif("Shopping Cart", "Minimalist UI", (7, 12), 1, "fa-cart-shopping", "#FF9800"),
	Motif("Email Sent", "Minimalist UI", (12, 19), 1, "fa-paper-plane", "#0288D1"),
]

_GENERATED_TYPES = ["Ping", "Alert", "Hifi", "Loft", "Echo", "Wave"]
_GENERATED_GENRES = ["Retro & Lofi", "ASMR & Nature", "Cinematic Effects", "Gaming Classics"]


def _generated (count: int = 110) -> typing.List[Motif]:

	"""Two-note tones named ``"<type> <i>"`` with offsets ``[i % 12, (i + 4) % 12]``."""

	return [
		Motif(
			name = f"{_GENERATED_TYPES[i % len(_GENERATED_TYPES)]} {i}",
			genre = _GENERATED_GENRES[i % len(_GENERATED_GENRES)],
			offsets = (i % 12, (i + 4) % 12),
			duration = 2,
		)
		for i in range(1, count + 1)
	]


class Catalog:

	"""
	Read-only motif library with text and genre search.
	"""

	def __init__ (self, motifs: typing.Optional[typing.Iterable[Motif]] = None) -> None:

		"""Use ``motifs``, or the built-in library when omitted."""

		self._motifs: typing.List[Motif] = list(motifs) if motifs is not None else _NAMED + _generated()
		self._by_id: typing.Dict[str, Motif] = {m.motif_id: m for m in self._motifs}

	def __len__ (self) -> int:

		return len(self._motifs)

	def genres (self) -> typing.List[str]:

		"""Distinct genres in library order."""

		return list(dict.fromkeys(m.genre for m in self._motifs))

	def get (self, motif_id: str) -> Motif:

		"""Look up a motif by id.  Raises ``KeyError`` when unknown."""

		if motif_id not in self._by_id:
			raise KeyError(f"Unknown motif {motif_id!r}")

		return self._by_id[motif_id]

	def search (self, text: str = "", genre: str = ALL_GENRES) -> typing.List[Motif]:

		"""Motifs whose name contains ``text`` (case-insensitive) within ``genre``."""

		needle = text.lower()

		return [
			m for m in self._motifs
			if needle in m.name.lower() and (genre == ALL_GENRES or m.genre == genre)
		]
