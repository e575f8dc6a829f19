"""Persistent collection of recorded performances.

The core treats the archive as synchronous and non-failing: I/O problems are
logged as warnings and never propagate into a note transition.  Both stores
normalize event logs on every write so a stored performance never holds an
unmatched ``ON`` or ``OFF``.

Two stores are provided:

- :class:`MemoryArchive` - in-process list, used by tests and when no archive path is configured.
- :class:`JsonArchive` - one JSON file rewritten whole on each change::

	{"version": 1, "performances": [{"id": ..., "name": ..., "data": [...], "annotation": ...}]}
"""

import dataclasses
import datetime
import json
import logging
import os
import pathlib
import tempfile
import typing
import uuid

import resonote.performance


logger = logging.getLogger(__name__)

_UNSET: typing.Any = object()


@typing.runtime_checkable
class ArchiveStore (typing.Protocol):

	"""
	Protocol implemented by every performance store.
	"""

	def save (self, performance: resonote.performance.Performance) -> None: ...

	def list (self) -> typing.List[resonote.performance.Performance]: ...

	def get (self, performance_id: str) -> typing.Optional[resonote.performance.Performance]: ...

	def delete (self, performance_id: str) -> None: ...

	def update (self, performance_id: str, display_name: typing.Any = _UNSET, annotation: typing.Any = _UNSET) -> None: ...


def new_performance_id () -> str:

	"""Return a fresh unique identifier."""

	return uuid.uuid4().hex[:12]


def default_name (store: ArchiveStore) -> str:

	"""Name for the next recording: ``"User Mix N"`` with N = stored count + 1."""

	return f"User Mix {len(store.list()) + 1}"


def _normalized (performance: resonote.performance.Performance) -> resonote.performance.Performance:

	"""Copy of ``performance`` with its event log normalized."""

	return dataclasses.replace(performance, events=resonote.performance.normalize_events(performance.events))


def _patched (performance: resonote.performance.Performance, display_name: typing.Any, annotation: typing.Any) -> resonote.performance.Performance:

	"""Apply an update patch, leaving unset fields alone."""

	changes: typing.Dict[str, typing.Any] = {}

	if display_name is not _UNSET:
		changes["display_name"] = display_name

	if annotation is not _UNSET:
		changes["annotation"] = annotation

	return dataclasses.replace(performance, **changes)


class MemoryArchive:

	"""Archive held in a plain list.  Returned performances are copies."""

	def __init__ (self) -> None:

		self._items: typing.List[resonote.performance.Performance] = []

	def save (self, performance: resonote.performance.Performance) -> None:

		"""Append ``performance``, or replace the stored one with the same id."""

		stored = _normalized(performance)

		for index, existing in enumerate(self._items):
			if existing.id == stored.id:
				self._items[index] = stored
				return

		self._items.append(stored)

	def list (self) -> typing.List[resonote.performance.Performance]:

		"""All performances in insertion order."""

		return [dataclasses.replace(p, events=list(p.events)) for p in self._items]

	def get (self, performance_id: str) -> typing.Optional[resonote.performance.Performance]:

		"""Look up one performance by id."""

		for performance in self.list():
			if performance.id == performance_id:
				return performance

		return None

	def delete (self, performance_id: str) -> None:

		"""Remove a performance.  Unknown ids are ignored."""

		self._items = [p for p in self._items if p.id != performance_id]

	def update (self, performance_id: str, display_name: typing.Any = _UNSET, annotation: typing.Any = _UNSET) -> None:

		"""Patch the display name and/or annotation of a stored performance."""

		for index, existing in enumerate(self._items):
			if existing.id == performance_id:
				self._items[index] = _normalized(_patched(existing, display_name, annotation))
				return

		logger.warning(f"Cannot update unknown performance {performance_id!r}")


class JsonArchive:

	"""
	Archive stored as a single JSON file.

	Every change reads the whole collection, modifies it and writes it back
	through a temporary file and ``os.replace``, so a crash mid-write never
	leaves a truncated archive behind.
	"""

	def __init__ (self, path: typing.Union[str, pathlib.Path]) -> None:

		self.path = pathlib.Path(path).expanduser()

	def _read (self) -> typing.List[resonote.performance.Performance]:

		"""Load the collection.  A missing or unreadable file reads as empty.

		A file that exists but cannot be read or parsed is renamed to
		``<name>.corrupt-<timestamp>`` first, so the next write starts a fresh
		archive instead of overwriting the old recordings.
		"""

		if not self.path.exists():
			return []

		try:
			with open(self.path, 'r', encoding='utf-8') as f:
				payload = json.load(f)

			# Early archives were a bare list of records.
			records = payload.get("performances", []) if isinstance(payload, dict) else payload
			return [resonote.performance.Performance.from_dict(r) for r in records]

		except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
			logger.warning(f"Could not read archive {self.path}: {e}")
			self._set_aside()
			return []

	def _set_aside (self) -> None:

		"""Move an unreadable archive file out of the way, keeping its contents."""

		stamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S-%f")
		backup = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")

		try:
			os.replace(self.path, backup)
			logger.warning(f"Kept unreadable archive as {backup}")

		except OSError as e:
			logger.warning(f"Could not set aside unreadable archive {self.path}: {e}")

	def _write (self, performances: typing.List[resonote.performance.Performance]) -> None:

		"""Replace the file contents with ``performances``."""

		payload = {
			"version": resonote.performance.RECORD_VERSION,
			"performances": [p.to_dict() for p in performances],
		}

		try:
			self.path.parent.mkdir(parents=True, exist_ok=True)

			fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".archive-", suffix=".json")

			try:
				with os.fdopen(fd, 'w', encoding='utf-8') as f:
					json.dump(payload, f, indent=2)
				os.replace(tmp_name, self.path)

			except BaseException:
				os.unlink(tmp_name)
				raise

		except OSError as e:
			logger.warning(f"Could not write archive {self.path}: {e}")

	def save (self, performance: resonote.performance.Performance) -> None:

		"""Append ``performance``, or replace the stored one with the same id."""

		performances = self._read()
		stored = _normalized(performance)

		for index, existing in enumerate(performances):
			if existing.id == stored.id:
				performances[index] = stored
				break
		else:
			performances.append(stored)

		self._write(performances)
		logger.info(f"Archived {stored.display_name!r} ({len(stored.events)} events)")

	def list (self) -> typing.List[resonote.performance.Performance]:

		"""All performances in insertion order."""

		return self._read()

	def get (self, performance_id: str) -> typing.Optional[resonote.performance.Performance]:

		"""Look up one performance by id."""

		for performance in self._read():
			if performance.id == performance_id:
				return performance

		return None

	def delete (self, performance_id: str) -> None:

		"""Remove a performance.  Unknown ids are ignored."""

		performances = self._read()
		remaining = [p for p in performances if p.id != performance_id]

		if len(remaining) != len(performances):
			self._write(remaining)

	def update (self, performance_id: str, display_name: typing.Any = _UNSET, annotation: typing.Any = _UNSET) -> None:

		"""Patch the display name and/or annotation of a stored performance."""

		performances = self._read()

		for index, existing in enumerate(performances):
			if existing.id == performance_id:
				performances[index] = _normalized(_patched(existing, display_name, annotation))
				self._write(performances)
				return

		logger.warning(f"Cannot update unknown performance {performance_id!r}")
