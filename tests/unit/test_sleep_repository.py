"""Unit tests for SleepEntryRepository"""
import asyncio
import pytest
from datetime import timedelta

from sleeptrack.exceptions import (
    AuthenticationError,
    RecordNotFoundError,
    SleepTrackError,
    StorageError,
    ValidationError,
)
from sleeptrack.models.sleep import SleepEntry
from sleeptrack.models.user import UserIdentity
from sleeptrack.services.sleep_repository import SleepEntryRepository, sort_entries


@pytest.fixture
def repo(entry_backend, identity, tz):
    return SleepEntryRepository(entry_backend, identity, tz=tz)


def stored_entry(bedtime, hours, user_id="user-123", entry_id=None):
    return SleepEntry.from_times(
        bedtime=bedtime,
        wake_time=bedtime + timedelta(hours=hours),
        user_id=user_id,
        entry_id=entry_id,
    )


# ============================================================================
# load
# ============================================================================

@pytest.mark.asyncio
async def test_load_sorts_newest_first(repo, entry_backend, at):
    older = stored_entry(at(2024, 1, 14, 22), 7.0)
    newer = stored_entry(at(2024, 1, 16, 22), 8.0)
    middle = stored_entry(at(2024, 1, 15, 22), 6.0)
    for e in (older, newer, middle):
        entry_backend.rows[e.id] = e

    result = await repo.load()

    assert [e.id for e in result] == [newer.id, middle.id, older.id]
    assert repo.get_latest() == newer
    assert len(repo) == 3
    assert repo.error is None


@pytest.mark.asyncio
async def test_load_only_returns_own_entries(repo, entry_backend, at):
    mine = stored_entry(at(2024, 1, 16, 22), 8.0)
    theirs = stored_entry(at(2024, 1, 16, 22), 8.0, user_id="someone-else")
    entry_backend.rows[mine.id] = mine
    entry_backend.rows[theirs.id] = theirs

    result = await repo.load()

    assert [e.id for e in result] == [mine.id]


@pytest.mark.asyncio
async def test_load_unauthenticated_is_empty(entry_backend, tz):
    repo = SleepEntryRepository(entry_backend, UserIdentity.anonymous(), tz=tz)

    assert await repo.load() == []
    assert repo.entries == ()
    assert entry_backend.calls == []


@pytest.mark.asyncio
async def test_load_failure_keeps_previous_snapshot(repo, entry_backend, at, storage_failure):
    entry = stored_entry(at(2024, 1, 16, 22), 8.0)
    entry_backend.rows[entry.id] = entry
    await repo.load()

    entry_backend.fail_with = storage_failure
    with pytest.raises(StorageError):
        await repo.load()

    assert repo.entries == (entry,)
    assert repo.error == storage_failure.user_message
    assert repo.loading is False


@pytest.mark.asyncio
async def test_loading_flag_while_pending(entry_backend, identity, tz):
    release = asyncio.Event()
    original_list = entry_backend.list

    async def slow_list(user_scope):
        await release.wait()
        return await original_list(user_scope)

    entry_backend.list = slow_list
    repo = SleepEntryRepository(entry_backend, identity, tz=tz)

    task = asyncio.create_task(repo.load())
    await asyncio.sleep(0)
    assert repo.loading is True

    release.set()
    await task
    assert repo.loading is False


# ============================================================================
# add
# ============================================================================

@pytest.mark.asyncio
async def test_add_computes_duration_and_persists(repo, entry_backend, at, test_user_id):
    entry = await repo.add(at(2024, 1, 16, 22, 30), at(2024, 1, 17, 6, 45), note="ok", quality=4)

    assert entry.duration == 8.3
    assert entry.user_id == test_user_id
    assert entry.quality == 4
    assert entry_backend.rows[entry.id] == entry
    assert repo.entries == (entry,)


@pytest.mark.asyncio
async def test_add_wraps_wake_time_to_next_day(repo, at):
    entry = await repo.add(at(2024, 1, 16, 23, 0), at(2024, 1, 16, 7, 0))

    assert entry.duration == 8.0


@pytest.mark.asyncio
async def test_add_backfilled_entry_keeps_order(repo, at):
    recent = await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))
    backfill = await repo.add(at(2024, 1, 10, 22), at(2024, 1, 11, 6))

    assert repo.entries == (recent, backfill)


@pytest.mark.asyncio
async def test_add_failure_leaves_snapshot_unchanged(repo, entry_backend, at, storage_failure):
    first = await repo.add(at(2024, 1, 15, 22), at(2024, 1, 16, 6))

    entry_backend.fail_with = storage_failure
    with pytest.raises(StorageError):
        await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))

    assert repo.entries == (first,)
    assert repo.error is not None


@pytest.mark.asyncio
async def test_add_requires_authentication(entry_backend, tz, at):
    repo = SleepEntryRepository(entry_backend, UserIdentity.anonymous(), tz=tz)

    with pytest.raises(AuthenticationError):
        await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))

    assert entry_backend.calls == []


@pytest.mark.asyncio
async def test_add_note_too_long_is_validation_error(repo, entry_backend, at):
    with pytest.raises(ValidationError) as exc_info:
        await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6), note="x" * 201)

    assert isinstance(exc_info.value, SleepTrackError)
    assert exc_info.value.field == "note"
    assert entry_backend.calls == []
    assert repo.entries == ()


@pytest.mark.asyncio
@pytest.mark.parametrize("quality", [0, 6])
async def test_add_quality_out_of_range_is_validation_error(repo, at, quality):
    with pytest.raises(ValidationError) as exc_info:
        await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6), quality=quality)

    assert exc_info.value.field == "quality"


@pytest.mark.asyncio
async def test_update_invalid_quality_keeps_entry(repo, entry_backend, at):
    entry = await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6), quality=3)

    with pytest.raises(ValidationError):
        await repo.update(entry.id, at(2024, 1, 16, 22), at(2024, 1, 17, 6), quality=9)

    assert repo.entries == (entry,)
    assert entry_backend.rows[entry.id].quality == 3


@pytest.mark.asyncio
async def test_concurrent_adds_both_land(repo, at):
    a, b = await asyncio.gather(
        repo.add(at(2024, 1, 15, 22), at(2024, 1, 16, 6)),
        repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6)),
    )

    assert repo.entries == (b, a)
    assert repo.loading is False


# ============================================================================
# update
# ============================================================================

@pytest.mark.asyncio
async def test_update_recomputes_duration_and_resorts(repo, entry_backend, at):
    old = await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))
    other = await repo.add(at(2024, 1, 15, 22), at(2024, 1, 16, 6))

    updated = await repo.update(old.id, at(2024, 1, 14, 23), at(2024, 1, 15, 5), note="moved")

    assert updated.id == old.id
    assert updated.duration == 6.0
    assert updated.note == "moved"
    assert repo.entries == (other, updated)
    assert entry_backend.rows[old.id] == updated


@pytest.mark.asyncio
async def test_update_unknown_id_raises_not_found(repo, at):
    existing = await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))

    with pytest.raises(RecordNotFoundError):
        await repo.update("missing-id", at(2024, 1, 16, 22), at(2024, 1, 17, 6))

    assert repo.entries == (existing,)


@pytest.mark.asyncio
async def test_update_failure_leaves_snapshot_unchanged(repo, entry_backend, at, storage_failure):
    entry = await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))

    entry_backend.fail_with = storage_failure
    with pytest.raises(StorageError):
        await repo.update(entry.id, at(2024, 1, 16, 23), at(2024, 1, 17, 6))

    assert repo.entries == (entry,)


# ============================================================================
# delete / clear_all
# ============================================================================

@pytest.mark.asyncio
async def test_delete_removes_entry(repo, entry_backend, at):
    keep = await repo.add(at(2024, 1, 15, 22), at(2024, 1, 16, 6))
    gone = await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))

    assert await repo.delete(gone.id) is True

    assert repo.entries == (keep,)
    assert gone.id not in entry_backend.rows
    assert repo.get(gone.id) is None


@pytest.mark.asyncio
async def test_delete_unknown_id(repo, at):
    entry = await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))

    with pytest.raises(RecordNotFoundError):
        await repo.delete("nope")

    assert repo.entries == (entry,)


@pytest.mark.asyncio
async def test_delete_cannot_remove_other_users_entry(repo, entry_backend, at):
    theirs = stored_entry(at(2024, 1, 16, 22), 8.0, user_id="someone-else")
    entry_backend.rows[theirs.id] = theirs

    with pytest.raises(RecordNotFoundError):
        await repo.delete(theirs.id)

    assert theirs.id in entry_backend.rows


@pytest.mark.asyncio
async def test_delete_failure_keeps_entry(repo, entry_backend, at, storage_failure):
    entry = await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))

    entry_backend.fail_with = storage_failure
    with pytest.raises(StorageError):
        await repo.delete(entry.id)

    assert repo.entries == (entry,)


@pytest.mark.asyncio
async def test_clear_all(repo, entry_backend, at):
    await repo.add(at(2024, 1, 15, 22), at(2024, 1, 16, 6))
    await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))
    other = stored_entry(at(2024, 1, 16, 22), 8.0, user_id="someone-else")
    entry_backend.rows[other.id] = other

    assert await repo.clear_all() is True

    assert repo.entries == ()
    assert list(entry_backend.rows) == [other.id]


@pytest.mark.asyncio
async def test_clear_all_failure_keeps_snapshot(repo, entry_backend, at, storage_failure):
    entry = await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))

    entry_backend.fail_with = storage_failure
    with pytest.raises(StorageError):
        await repo.clear_all()

    assert repo.entries == (entry,)


# ============================================================================
# Stats and helpers
# ============================================================================

@pytest.mark.asyncio
async def test_weekly_stats_over_snapshot(repo, at, fixed_now):
    await repo.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))
    await repo.add(at(2024, 1, 14, 23), at(2024, 1, 15, 4))

    stats = repo.weekly_stats(now=fixed_now)

    assert stats.average_duration == 6.5
    assert stats.total_entries == 2


def test_sort_entries_breaks_ties_by_id(at):
    bedtime = at(2024, 1, 16, 22)
    a = stored_entry(bedtime, 8.0, entry_id="a")
    b = stored_entry(bedtime, 7.0, entry_id="b")

    assert sort_entries([a, b]) == [b, a]


def test_entries_snapshot_is_read_only(repo):
    assert isinstance(repo.entries, tuple)
