import pytest

from api.assets import db_manager as assets_db
from api.history import db_manager as history_db
from api.transitions.db_manager import TransitionEngine
from core.exceptions import (
    AssetNotFoundError,
    DuplicateAssetError,
    InvalidTransitionError,
    LocationNotFoundError,
    UnknownActorError,
    UnknownAssetTypeError,
)
from core.lifecycle import TransitionRules
from conftest import ADMIN_ID, CLOSED_LOCATION_ID, INACTIVE_ID, STOCKROOM_ID, TECH_ID


async def reload(db, asset_number):
    # Failed operations roll the session back and expire loaded objects
    return await history_db.get_asset_by_number(db, asset_number)


async def assert_state_matches_history(db, asset_number):
    asset = await reload(db, asset_number)
    assert await history_db.most_recent_state(db, asset.id) == asset.state
    return asset


@pytest.mark.anyio
async def test_laptop_end_to_end(db_session, transition_engine, make_asset):
    asset = await make_asset("LAPTOP")
    number = asset.asset_number
    assert asset.state == "AVAILABLE"

    applied = await transition_engine.request_transition(
        db_session, number, "SIGNED_OUT", TECH_ID, reason="build"
    )
    assert applied.previous_state == "AVAILABLE"
    assert applied.new_state == "SIGNED_OUT"
    assert len(applied.entries) == 1

    entries = await history_db.entries_for(db_session, asset.id)
    latest = entries[0]
    assert latest.previous_state == "AVAILABLE"
    assert latest.new_state == "SIGNED_OUT"
    assert latest.changed_by == TECH_ID
    assert latest.change_reason == "build"

    applied = await transition_engine.request_transition(db_session, number, "BUILDING", TECH_ID)
    assert applied.new_state == "BUILDING"

    applied = await transition_engine.request_transition(db_session, number, "READY_TO_GO", TECH_ID)
    assert applied.new_state == "READY_TO_GO"

    asset = await assert_state_matches_history(db_session, number)
    assert asset.state == "READY_TO_GO"
    # creation + three transitions
    assert len(await history_db.entries_for(db_session, asset.id)) == 4


@pytest.mark.anyio
async def test_creation_writes_first_history_entry(db_session, make_asset):
    asset = await make_asset("DESKTOP", location_id=STOCKROOM_ID, department="Finance")

    assert asset.asset_number == "03-00001"
    assert asset.version == 1
    assert asset.created_at is not None

    entries = await history_db.entries_for(db_session, asset.id)
    assert len(entries) == 1
    assert entries[0].sequence == 1
    assert entries[0].previous_state is None
    assert entries[0].new_state == "AVAILABLE"
    assert entries[0].changed_by == ADMIN_ID


@pytest.mark.anyio
async def test_asset_numbers_count_per_type(make_asset):
    first = await make_asset("LAPTOP")
    second = await make_asset("LAPTOP")
    monitor = await make_asset("MONITOR")
    phone = await make_asset("MOBILE_PHONE")

    assert first.asset_number == "04-00001"
    assert second.asset_number == "04-00002"
    assert monitor.asset_number == "05-00001"
    assert phone.asset_number == "01-00001"


@pytest.mark.anyio
async def test_create_rejects_state_outside_lifecycle(db_session, make_asset):
    with pytest.raises(InvalidTransitionError):
        await make_asset("MONITOR", initial_state="BUILDING")

    assert await assets_db.list_assets(db_session) == []
    # The failed attempt did not use up a number
    monitor = await make_asset("MONITOR")
    assert monitor.asset_number == "05-00001"


@pytest.mark.anyio
async def test_create_rejects_type_without_lifecycle(db_session, make_asset):
    with pytest.raises(UnknownAssetTypeError):
        await make_asset("PRINTER")

    assert await assets_db.list_assets(db_session) == []


@pytest.mark.anyio
async def test_tenant_types_share_one_number_series(db_session):
    engine = TransitionEngine(TransitionRules.from_lifecycles({
        "LAPTOP": ["AVAILABLE", "ISSUED"],
        "DOCK": ["AVAILABLE", "ISSUED"],
        "HEADSET": ["IN_BOX", "ISSUED"],
    }))

    numbers = []
    for serial, asset_type in [("D-1", "DOCK"), ("H-1", "HEADSET"), ("L-1", "LAPTOP"), ("D-2", "DOCK")]:
        asset = await assets_db.create_asset(
            db_session,
            engine,
            serial_number=serial,
            description="Tenant-defined type",
            asset_type=asset_type,
            actor_id=ADMIN_ID,
        )
        numbers.append((asset.asset_number, asset.state))

    assert numbers == [
        ("99-00001", "AVAILABLE"),
        ("99-00002", "IN_BOX"),
        ("04-00001", "AVAILABLE"),
        ("99-00003", "AVAILABLE"),
    ]


@pytest.mark.anyio
async def test_create_rejects_duplicate_serial(make_asset):
    await make_asset("LAPTOP", serial_number="DUP-1")
    with pytest.raises(DuplicateAssetError):
        await make_asset("TABLET", serial_number="DUP-1")


@pytest.mark.anyio
async def test_create_rejects_inactive_location(make_asset):
    with pytest.raises(LocationNotFoundError):
        await make_asset("LAPTOP", location_id=CLOSED_LOCATION_ID)
    with pytest.raises(LocationNotFoundError):
        await make_asset("LAPTOP", location_id=999)


@pytest.mark.anyio
async def test_create_can_start_mid_lifecycle(db_session, make_asset):
    asset = await make_asset("LAPTOP", initial_state="READY_TO_GO")

    assert asset.state == "READY_TO_GO"
    await assert_state_matches_history(db_session, asset.asset_number)


@pytest.mark.anyio
async def test_monitor_lifecycle(db_session, transition_engine, make_asset):
    asset = await make_asset("MONITOR")
    number = asset.asset_number

    await transition_engine.request_transition(db_session, number, "SIGNED_OUT", TECH_ID)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await transition_engine.request_transition(db_session, number, "BUILDING", TECH_ID)
    assert exc_info.value.allowed == ["READY_TO_GO"]

    await transition_engine.request_transition(db_session, number, "READY_TO_GO", TECH_ID)
    await transition_engine.request_transition(db_session, number, "ISSUED", TECH_ID)

    asset = await assert_state_matches_history(db_session, number)
    assert asset.state == "ISSUED"


@pytest.mark.anyio
@pytest.mark.parametrize("asset_type", ["MOBILE_PHONE", "TABLET", "DESKTOP", "LAPTOP", "MONITOR"])
async def test_return_edge_for_every_type(db_session, transition_engine, make_asset, asset_type):
    asset = await make_asset(asset_type, initial_state="ISSUED")

    applied = await transition_engine.request_transition(
        db_session, asset.asset_number, "AVAILABLE", TECH_ID, reason="returned"
    )

    assert applied.previous_state == "ISSUED"
    assert applied.new_state == "AVAILABLE"


@pytest.mark.anyio
async def test_cannot_skip_ahead(db_session, transition_engine, make_asset):
    asset = await make_asset("LAPTOP")
    number, asset_id = asset.asset_number, asset.id

    with pytest.raises(InvalidTransitionError) as exc_info:
        await transition_engine.request_transition(db_session, number, "ISSUED", TECH_ID)

    assert exc_info.value.from_state == "AVAILABLE"
    assert exc_info.value.allowed == ["SIGNED_OUT"]
    asset = await reload(db_session, number)
    assert asset.state == "AVAILABLE"
    assert asset.version == 1
    assert len(await history_db.entries_for(db_session, asset_id)) == 1


@pytest.mark.anyio
async def test_self_transition_always_rejected(db_session, transition_engine, make_asset):
    asset = await make_asset("TABLET")
    number, asset_id = asset.asset_number, asset.id

    for _ in range(3):
        with pytest.raises(InvalidTransitionError):
            await transition_engine.request_transition(db_session, number, "AVAILABLE", TECH_ID)

    assert len(await history_db.entries_for(db_session, asset_id)) == 1
    await assert_state_matches_history(db_session, number)


@pytest.mark.anyio
@pytest.mark.parametrize("actor_id", [None, INACTIVE_ID, 999])
async def test_unresolved_actor_rejected(db_session, transition_engine, make_asset, actor_id):
    asset = await make_asset("LAPTOP")
    number = asset.asset_number

    with pytest.raises(UnknownActorError):
        await transition_engine.request_transition(db_session, number, "SIGNED_OUT", actor_id)

    asset = await reload(db_session, number)
    assert asset.state == "AVAILABLE"


@pytest.mark.anyio
async def test_missing_and_deleted_assets_not_found(db_session, transition_engine, make_asset):
    with pytest.raises(AssetNotFoundError):
        await transition_engine.request_transition(db_session, "04-99999", "SIGNED_OUT", TECH_ID)

    asset = await make_asset("LAPTOP")
    number = asset.asset_number
    await assets_db.soft_delete_asset(db_session, transition_engine, number, ADMIN_ID)

    with pytest.raises(AssetNotFoundError):
        await transition_engine.request_transition(db_session, number, "SIGNED_OUT", TECH_ID)
    with pytest.raises(AssetNotFoundError):
        await assets_db.get_active_asset(db_session, number)

    # History survives the delete; the delete itself is recorded
    asset = await reload(db_session, number)
    assert asset.is_deleted
    entries = await history_db.entries_for(db_session, asset.id)
    assert len(entries) == 2
    assert entries[0].previous_state == entries[0].new_state == "AVAILABLE"
    assert "deleted_at" in entries[0].details


@pytest.mark.anyio
async def test_history_sequence_and_timestamps_ordered(db_session, transition_engine, make_asset):
    asset = await make_asset("LAPTOP")
    number = asset.asset_number
    for target in ("SIGNED_OUT", "BUILDING", "READY_TO_GO", "ISSUED", "AVAILABLE"):
        await transition_engine.request_transition(db_session, number, target, TECH_ID)
        await assert_state_matches_history(db_session, number)

    entries = list(reversed(await history_db.entries_for(db_session, asset.id)))
    assert [e.sequence for e in entries] == [1, 2, 3, 4, 5, 6]
    timestamps = [e.timestamp for e in entries]
    assert timestamps == sorted(timestamps)
    # Each row picks up where the previous one left off
    for prev, cur in zip(entries, entries[1:]):
        assert cur.previous_state == prev.new_state

    limited = await history_db.entries_for(db_session, asset.id, limit=2)
    assert [e.new_state for e in limited] == ["AVAILABLE", "ISSUED"]


@pytest.mark.anyio
async def test_version_bumps_on_every_write(db_session, transition_engine, make_asset):
    asset = await make_asset("LAPTOP")
    number = asset.asset_number

    applied = await transition_engine.request_transition(db_session, number, "SIGNED_OUT", TECH_ID)
    assert applied.asset.version == 2

    applied = await transition_engine.request_transition(
        db_session, number, "BUILDING", TECH_ID, expected_version=2
    )
    assert applied.asset.version == 3


@pytest.mark.anyio
async def test_advance_writes_one_entry_per_hop(db_session, transition_engine, make_asset):
    asset = await make_asset("LAPTOP")
    number = asset.asset_number

    applied = await transition_engine.advance_to_state(db_session, number, "ISSUED", reason="urgent")

    assert applied.previous_state == "AVAILABLE"
    assert applied.new_state == "ISSUED"
    assert [e.new_state for e in applied.entries] == [
        "SIGNED_OUT", "BUILDING", "READY_TO_GO", "ISSUED",
    ]
    assert all(e.changed_by is None for e in applied.entries)
    assert [e.details["hop"] for e in applied.entries] == [1, 2, 3, 4]
    assert all(e.details["target_state"] == "ISSUED" for e in applied.entries)
    await assert_state_matches_history(db_session, number)


@pytest.mark.anyio
async def test_advance_rejects_current_and_unreachable_state(db_session, transition_engine, make_asset):
    monitor = await make_asset("MONITOR")
    number = monitor.asset_number

    with pytest.raises(InvalidTransitionError):
        await transition_engine.advance_to_state(db_session, number, "AVAILABLE", ADMIN_ID)
    with pytest.raises(InvalidTransitionError):
        await transition_engine.advance_to_state(db_session, number, "BUILDING", ADMIN_ID)

    monitor = await reload(db_session, number)
    assert monitor.state == "AVAILABLE"
    assert len(await history_db.entries_for(db_session, monitor.id)) == 1
