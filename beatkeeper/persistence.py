"""Best-effort persistence of the metronome state.

The state lives under a single fixed key in a key-value blob store. Reads
happen once at startup. Writes are debounced so that a burst of edits (a
dragged tempo slider, say) produces one write, and a failed write is logged
and forgotten - persistence never blocks playback or surfaces an error.
"""

import asyncio
import logging
import os
import pathlib
import typing

import beatkeeper.codec
import beatkeeper.constants


logger = logging.getLogger(__name__)


@typing.runtime_checkable
class BlobStore (typing.Protocol):

	"""
	A key-value store of string blobs.
	"""

	def get (self, key: str) -> typing.Optional[str]:

		...

	def set (self, key: str, blob: str) -> None:

		...


class MemoryBlobStore:

	"""Blob store held in a dict. Useful for tests and for running without a disk."""

	def __init__ (self, initial: typing.Optional[typing.Dict[str, str]] = None) -> None:

		self.blobs: typing.Dict[str, str] = dict(initial or {})

	def get (self, key: str) -> typing.Optional[str]:

		return self.blobs.get(key)

	def set (self, key: str, blob: str) -> None:

		self.blobs[key] = blob


class FileBlobStore:

	"""
	Blob store with one file per key under a directory.

	Keys are flattened into file names ("beatkeeper/state/v1" is stored as
	"beatkeeper_state_v1.json"). Writes go to a temporary file that is then
	renamed over the target, so a crash mid-write never leaves a torn blob.
	"""

	def __init__ (self, directory: typing.Union[str, pathlib.Path]) -> None:

		self.directory = pathlib.Path(directory).expanduser()

	def path_for (self, key: str) -> pathlib.Path:

		safe = "".join(char if char.isalnum() or char in "-." else "_" for char in key)
		return self.directory / f"{safe}.json"

	def get (self, key: str) -> typing.Optional[str]:

		path = self.path_for(key)

		if not path.exists():
			return None

		return path.read_text(encoding="utf-8")

	def set (self, key: str, blob: str) -> None:

		path = self.path_for(key)
		path.parent.mkdir(parents=True, exist_ok=True)

		temp_path = path.with_suffix(".tmp")
		temp_path.write_text(blob, encoding="utf-8")
		os.replace(temp_path, path)


def read_state (store: BlobStore, key: str = beatkeeper.constants.STORAGE_KEY) -> typing.Optional[beatkeeper.codec.PersistedState]:

	"""Load and sanitize the saved state, or return None if there is nothing usable."""

	try:
		blob = store.get(key)
	except Exception as exc:
		logger.warning(f"Could not read saved state: {exc}")
		return None

	return beatkeeper.codec.deserialize(blob)


def write_blob (store: BlobStore, blob: str, key: str = beatkeeper.constants.STORAGE_KEY) -> bool:

	"""Write a blob, returning False instead of raising when the store refuses it."""

	try:
		store.set(key, blob)
	except Exception as exc:
		logger.debug(f"Skipped saving state: {exc}")
		return False

	return True


class DebouncedWriter:

	"""
	Coalesces save requests and writes the latest state once things go quiet.

	Call ``request()`` after every change. The snapshot is taken when the
	write actually happens, ``delay`` seconds after the most recent request,
	so it always reflects the final state of a burst of edits.
	"""

	def __init__ (
		self,
		store: BlobStore,
		snapshot: typing.Callable[[], beatkeeper.codec.PersistedState],
		delay: float = beatkeeper.constants.PERSIST_DEBOUNCE,
		key: str = beatkeeper.constants.STORAGE_KEY
	) -> None:

		self.store = store
		self.snapshot = snapshot
		self.delay = delay
		self.key = key
		self.write_count = 0
		self._handle: typing.Optional[asyncio.TimerHandle] = None

	@property
	def pending (self) -> bool:

		return self._handle is not None

	def request (self) -> None:

		"""Schedule a write, replacing any write already waiting.

		Outside a running event loop there is nothing to debounce against, so
		the write happens immediately.
		"""

		if self._handle is not None:
			self._handle.cancel()
			self._handle = None

		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			self.flush()
			return

		self._handle = loop.call_later(self.delay, self.flush)

	def flush (self) -> bool:

		"""Write now. Returns whether the write succeeded; callers may ignore it."""

		if self._handle is not None:
			self._handle.cancel()
			self._handle = None

		ok = write_blob(self.store, beatkeeper.codec.serialize(self.snapshot()), self.key)

		if ok:
			self.write_count += 1

		return ok

	def cancel (self) -> None:

		if self._handle is not None:
			self._handle.cancel()
			self._handle = None
