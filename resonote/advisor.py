"""Text-generation advisor.

Two single-shot calls to a Gemini-style ``generateContent`` endpoint:

- :meth:`AdvisorBridge.describe` names a set of pitches: ``Annotation(title, mood)``.
- :meth:`AdvisorBridge.compose` turns a mood prompt into pitch offsets.

Each call is one HTTP POST with the body
``{"contents": [{"parts": [{"text": prompt}]}]}``.  The reply text is read from
``candidates[0].content.parts[0].text``.  There are no retries.  Any failure
raises :class:`AdvisorUnavailable` (or its subclass
:class:`MalformedAdvisorPayload`), and callers leave their state untouched.

The blocking HTTP request runs in the default executor so the event loop,
and with it every note and playback timer, keeps running meanwhile.
"""

import asyncio
import json
import logging
import math
import re
import typing
import urllib.error
import urllib.parse
import urllib.request

import resonote.constants
import resonote.performance


logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-flash-latest"

_BRACKETED = re.compile(r"\[.*\]")


class AdvisorUnavailable (Exception):

	"""The advisor could not produce a usable answer."""


class MalformedAdvisorPayload (AdvisorUnavailable):

	"""The advisor answered, but not in the expected shape."""


def describe_prompt (pitches: typing.Iterable[int]) -> str:

	"""Prompt asking for a two-word title and a short mood for ``pitches``."""

	names = ", ".join(resonote.constants.NOTE_NAMES[p % 12] for p in pitches)

	return (
		f"Trendy producer mode. Notes: [{names}]. Give a 2-word trendy name and 10-word mood. "
		f"Format Name: [Name] | Analysis: [Analysis]"
	)


def compose_prompt (mood: str) -> str:

	"""Prompt asking for a bare JSON array of five pitch offsets."""

	return f'Return ONLY a JSON array of 5 MIDI offsets for: "{mood}". No markdown. e.g. [0,3,7,10,12]'


def parse_description (text: str) -> resonote.performance.Annotation:

	"""Split ``"Name: X | Analysis: Y"`` into an annotation.

	Raises ``MalformedAdvisorPayload`` when the ``|`` delimiter is missing or
	the title is empty.
	"""

	if "|" not in text:
		raise MalformedAdvisorPayload("Description has no '|' delimiter")

	name_part, mood_part = text.split("|", 1)

	title = name_part.replace("Name:", "").strip().strip("[]").strip()
	mood = mood_part.replace("Analysis:", "").strip().strip("[]").strip()

	if not title:
		raise MalformedAdvisorPayload("Description has an empty title")

	return resonote.performance.Annotation(title=title, mood=mood)


def parse_offsets (text: str) -> typing.List[int]:

	"""Extract the bracketed integer list from a compose reply.

	Raises ``MalformedAdvisorPayload`` unless the reply holds a non-empty
	``[...]`` list of integers.
	"""

	match = _BRACKETED.search(text)

	if match is None:
		raise MalformedAdvisorPayload("Reply holds no bracketed sequence")

	try:
		values = json.loads(match.group(0))
	except ValueError as e:
		raise MalformedAdvisorPayload(f"Bracketed sequence is not valid JSON: {e}") from e

	if not isinstance(values, list) or not values:
		raise MalformedAdvisorPayload("Bracketed sequence is empty")

	offsets: typing.List[int] = []

	for value in values:
		if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value != int(value):
			raise MalformedAdvisorPayload(f"Non-integer offset {value!r}")
		offsets.append(int(value))

	return offsets


def extract_text (payload: typing.Any) -> str:

	"""Read ``candidates[0].content.parts[0].text`` from a response body."""

	try:
		text = payload["candidates"][0]["content"]["parts"][0]["text"]
	except (KeyError, IndexError, TypeError) as e:
		raise MalformedAdvisorPayload(f"Unexpected response shape: {e!r}") from e

	if not isinstance(text, str):
		raise MalformedAdvisorPayload("Response text is not a string")

	return text


class AdvisorBridge:

	"""
	Request/response wrapper around the advisor service.
	"""

	def __init__ (
		self,
		api_key: typing.Optional[str] = None,
		model: str = DEFAULT_MODEL,
		endpoint: str = DEFAULT_ENDPOINT,
		timeout: float = 20.0
	) -> None:

		"""Configure the bridge.

		Parameters:
			api_key: Service credential.  Without one every call is unavailable.
			model: Model name substituted into ``endpoint``.
			endpoint: URL template with a ``{model}`` placeholder.
			timeout: Socket timeout in seconds.
		"""

		self.api_key = api_key
		self.model = model
		self.endpoint = endpoint
		self.timeout = timeout

	@property
	def configured (self) -> bool:

		"""True when a credential is set."""

		return bool(self.api_key)

	def _url (self) -> str:

		base = self.endpoint.format(model=self.model)
		return f"{base}?{urllib.parse.urlencode({'key': self.api_key})}"

	def _post (self, prompt: str) -> str:

		"""Blocking POST; returns the reply text."""

		body = json.dumps({"contents": [{"parts": [{"text": prompt}]}]}).encode("utf-8")

		request = urllib.request.Request(
			self._url(),
			data = body,
			headers = {"Content-Type": "application/json"},
			method = "POST"
		)

		try:
			with urllib.request.urlopen(request, timeout=self.timeout) as response:
				payload = json.loads(response.read().decode("utf-8"))

		except urllib.error.HTTPError as e:
			raise AdvisorUnavailable(f"Advisor returned HTTP {e.code}") from e

		except (urllib.error.URLError, OSError) as e:
			raise AdvisorUnavailable(f"Connection failed: {e}") from e

		except ValueError as e:
			raise MalformedAdvisorPayload(f"Response is not JSON: {e}") from e

		return extract_text(payload)

	async def _ask (self, prompt: str) -> str:

		if not self.configured:
			raise AdvisorUnavailable("No advisor API key configured")

		loop = asyncio.get_running_loop()
		return await loop.run_in_executor(None, self._post, prompt)

	async def describe (self, pitches: typing.Iterable[int]) -> resonote.performance.Annotation:

		"""Ask for a title and mood for a pitch set."""

		text = await self._ask(describe_prompt(list(pitches)))
		annotation = parse_description(text)

		logger.info(f"Advisor described pitches as {annotation.title!r}")
		return annotation

	async def compose (self, prompt: str) -> typing.List[int]:

		"""Ask for a motif (pitch offsets) matching a free-text mood."""

		text = await self._ask(compose_prompt(prompt))
		offsets = parse_offsets(text)

		logger.info(f"Advisor composed {offsets} for {prompt!r}")
		return offsets
