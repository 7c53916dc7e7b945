import asyncio
import pathlib

import pytest

import beatkeeper.codec
import beatkeeper.constants
import beatkeeper.persistence
import beatkeeper.state


class BrokenStore:

	"""Blob store whose every call fails, like a full disk or a read-only profile."""

	def get (self, key: str) -> str:

		raise OSError("unreadable")

	def set (self, key: str, blob: str) -> None:

		raise OSError("quota exceeded")


def test_file_store_round_trip (tmp_path: pathlib.Path) -> None:

	store = beatkeeper.persistence.FileBlobStore(tmp_path / "profile")

	assert store.get(beatkeeper.constants.STORAGE_KEY) is None

	store.set(beatkeeper.constants.STORAGE_KEY, "{\"bpm\": 90}")

	assert store.get(beatkeeper.constants.STORAGE_KEY) == "{\"bpm\": 90}"
	assert store.path_for(beatkeeper.constants.STORAGE_KEY).name == "beatkeeper_state_v1.json"
	assert not list((tmp_path / "profile").glob("*.tmp"))


def test_memory_store_satisfies_protocol () -> None:

	assert isinstance(beatkeeper.persistence.MemoryBlobStore(), beatkeeper.persistence.BlobStore)


def test_read_state_missing_and_corrupt () -> None:

	assert beatkeeper.persistence.read_state(beatkeeper.persistence.MemoryBlobStore()) is None

	store = beatkeeper.persistence.MemoryBlobStore({beatkeeper.constants.STORAGE_KEY: "garbage"})

	assert beatkeeper.persistence.read_state(store) is None


def test_read_state_survives_store_errors () -> None:

	assert beatkeeper.persistence.read_state(BrokenStore()) is None  # type: ignore[arg-type]


def test_write_blob_reports_failure () -> None:

	assert not beatkeeper.persistence.write_blob(BrokenStore(), "{}")  # type: ignore[arg-type]
	assert beatkeeper.persistence.write_blob(beatkeeper.persistence.MemoryBlobStore(), "{}")


def test_request_without_loop_writes_immediately () -> None:

	store = beatkeeper.persistence.MemoryBlobStore()
	state = beatkeeper.state.MetronomeState()
	writer = beatkeeper.persistence.DebouncedWriter(store, state.snapshot)

	writer.request()

	assert writer.write_count == 1
	assert not writer.pending
	assert beatkeeper.persistence.read_state(store) == state.snapshot()


@pytest.mark.asyncio
async def test_burst_of_changes_writes_once () -> None:

	"""Rapid edits coalesce into a single write of the final state."""

	store = beatkeeper.persistence.MemoryBlobStore()
	state = beatkeeper.state.MetronomeState()
	writer = beatkeeper.persistence.DebouncedWriter(store, state.snapshot, delay=0.05)
	state.events.on("change", writer.request)

	for bpm in (100, 110, 120, 130):
		state.set_bpm(bpm)

	assert writer.pending
	assert store.blobs == {}

	await asyncio.sleep(0.15)

	assert writer.write_count == 1
	restored = beatkeeper.persistence.read_state(store)
	assert restored is not None
	assert restored.bpm == 130


@pytest.mark.asyncio
async def test_cancel_drops_pending_write () -> None:

	store = beatkeeper.persistence.MemoryBlobStore()
	writer = beatkeeper.persistence.DebouncedWriter(store, beatkeeper.codec.PersistedState, delay=0.05)

	writer.request()
	writer.cancel()

	await asyncio.sleep(0.1)

	assert writer.write_count == 0
	assert store.blobs == {}


@pytest.mark.asyncio
async def test_failed_write_is_not_fatal () -> None:

	writer = beatkeeper.persistence.DebouncedWriter(BrokenStore(), beatkeeper.codec.PersistedState, delay=0.01)  # type: ignore[arg-type]

	writer.request()
	await asyncio.sleep(0.05)

	assert writer.write_count == 0
	assert not writer.pending
