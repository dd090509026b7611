import uuid

import pytest
from sqlalchemy import text

from core import qr_codec
from core.errors import Conflict, LookupFailed, NotFound, Unauthenticated, ValidationError
from core.inventory_store import InventoryStore
from core.scan import ScanState, resolve_scan
from db.box import BoxTag


class TestLocations:
    async def test_create_and_list_newest_first(self, store_a):
        garage = await store_a.create_location("  Garage ", "Left shelf")
        attic = await store_a.create_location("Attic")

        assert garage.name == "Garage"
        assert garage.description == "Left shelf"
        locations = await store_a.list_locations()
        assert [loc.id for loc in locations] == [attic.id, garage.id]

    async def test_blank_name_rejected(self, store_a):
        with pytest.raises(ValidationError):
            await store_a.create_location("   ")

    async def test_update_partial(self, store_a):
        loc = await store_a.create_location("Garage", "old")
        updated = await store_a.update_location(loc.id, {"description": "new"})
        assert updated.name == "Garage"
        assert updated.description == "new"

        with pytest.raises(ValidationError):
            await store_a.update_location(loc.id, {"name": ""})

    async def test_other_users_location_is_not_found(self, store_a, store_b):
        loc = await store_a.create_location("Garage")
        with pytest.raises(NotFound):
            await store_b.update_location(loc.id, {"name": "Mine now"})
        with pytest.raises(NotFound):
            await store_b.delete_location(loc.id)
        assert (await store_a.get_location(loc.id)).name == "Garage"

    async def test_delete_refused_while_boxes_reference_it(self, store_a):
        loc = await store_a.create_location("Garage")
        box, _ = await store_a.create_box("Tools", location_id=loc.id)
        assert await store_a.count_boxes_at(loc.id) == 1

        with pytest.raises(Conflict):
            await store_a.delete_location(loc.id)
        assert (await store_a.get_location(loc.id)).id == loc.id

        await store_a.update_box(box.id, {"location_id": None})
        assert await store_a.count_boxes_at(loc.id) == 0
        await store_a.delete_location(loc.id)
        with pytest.raises(NotFound):
            await store_a.get_location(loc.id)

    async def test_box_counts(self, store_a):
        garage = await store_a.create_location("Garage")
        attic = await store_a.create_location("Attic")
        await store_a.create_box("Tools", location_id=garage.id)
        await store_a.create_box("Paint", location_id=garage.id)
        await store_a.create_box("Loose")

        counts = await store_a.location_box_counts()
        assert counts[garage.id] == 2
        assert attic.id not in counts


class TestBoxes:
    async def test_garage_tools_scenario(self, store_a):
        garage = await store_a.create_location("Garage")
        new_id = uuid.uuid4()
        code = qr_codec.encode(new_id)

        box, warnings = await store_a.create_box(
            "Tools", qr_code=code, location_id=garage.id, tags=["wrench", "drill"]
        )
        assert warnings == []
        assert box.id == new_id

        found = await store_a.find_box_by_qr_code(code)
        assert found is not None
        assert found.id == new_id
        assert found.tags == ["wrench", "drill"]
        assert found.location.name == "Garage"
        assert found.to_schema["location"] == {"id": garage.id, "name": "Garage"}

    async def test_server_assigns_identity_when_omitted(self, store_a):
        box, _ = await store_a.create_box("Books")
        assert box.qr_code == qr_codec.encode(box.id)

    async def test_unrecognized_qr_code_rejected(self, store_a):
        with pytest.raises(ValidationError):
            await store_a.create_box("Books", qr_code="NotAQR:1234")

    async def test_duplicate_qr_code_conflicts(self, store_a):
        code = qr_codec.encode(uuid.uuid4())
        await store_a.create_box("One", qr_code=code)
        with pytest.raises(Conflict):
            await store_a.create_box("Two", qr_code=code, box_id=uuid.uuid4())

    async def test_location_must_be_owned(self, store_a, store_b):
        loc = await store_b.create_location("Their garage")
        with pytest.raises(NotFound):
            await store_a.create_box("Tools", location_id=loc.id)

    async def test_tags_keep_order_and_duplicates(self, store_a):
        box, _ = await store_a.create_box("Kitchen", tags=["pan", "Pan", "pan"])
        assert box.tags == ["pan", "Pan", "pan"]

    async def test_tag_update_replaces_whole_list(self, store_a):
        box, _ = await store_a.create_box("Kitchen", tags=["pan", "pot"])
        updated = await store_a.update_box(box.id, {"tags": ["kettle"]})
        assert updated.tags == ["kettle"]

        renamed = await store_a.update_box(box.id, {"name": "Kitchen stuff"})
        assert renamed.tags == ["kettle"]

        cleared = await store_a.update_box(box.id, {"tags": []})
        assert cleared.tags == []

    async def test_update_advances_updated_at(self, store_a):
        first, _ = await store_a.create_box("First")
        second, _ = await store_a.create_box("Second")
        assert [b.id for b in await store_a.list_boxes()] == [second.id, first.id]

        await store_a.update_box(first.id, {"tags": ["moved"]})
        assert [b.id for b in await store_a.list_boxes()] == [first.id, second.id]

    async def test_tag_failure_leaves_box_committed(self, store_a, monkeypatch):
        def insert_invalid_tag(box_id, tags):
            # content is NOT NULL, so the commit fails at flush time
            store_a.db.add(BoxTag(box_id=box_id, content=None, position=0))

        monkeypatch.setattr(store_a, "_insert_tags", insert_invalid_tag)
        box, warnings = await store_a.create_box("Fragile", tags=["glass"])

        assert warnings == ["Box saved, but its tags could not be saved"]
        assert box.name == "Fragile"
        assert box.tags == []
        stored = await store_a.get_box(box.id)
        assert stored.name == "Fragile"
        assert stored.tags == []
        assert await store_a.find_box_by_qr_code(box.qr_code) is not None

    async def test_delete_box(self, store_a):
        box, _ = await store_a.create_box("Temp", tags=["x"])
        await store_a.delete_box(box.id)
        with pytest.raises(NotFound):
            await store_a.get_box(box.id)
        assert await store_a.find_box_by_qr_code(box.qr_code) is None

    async def test_other_users_box_is_invisible(self, store_a, store_b):
        box, _ = await store_a.create_box("Private")
        assert await store_b.find_box_by_qr_code(box.qr_code) is None
        with pytest.raises(NotFound):
            await store_b.get_box(box.id)
        with pytest.raises(NotFound):
            await store_b.delete_box(box.id)
        assert await store_b.list_boxes() == []

    async def test_unknown_code_is_none(self, store_a):
        assert await store_a.find_box_by_qr_code("BinQR:does-not-exist") is None

    async def test_lookup_failure_is_reported_and_session_recovers(self, store_a):
        await store_a.create_location("Garage")
        await store_a.db.execute(text("DROP TABLE boxes"))
        await store_a.db.commit()

        with pytest.raises(LookupFailed):
            await store_a.find_box_by_qr_code("BinQR:anything")

        outcome = await resolve_scan(store_a, "BinQR:anything")
        assert outcome.state == ScanState.LOOKUP_ERROR
        assert outcome.retryable

        # the failed transaction was rolled back
        assert [loc.name for loc in await store_a.list_locations()] == ["Garage"]


class TestReissue:
    async def test_old_code_stops_resolving(self, store_a):
        box, _ = await store_a.create_box("Tools")
        old_code = box.qr_code

        new_code = await store_a.reissue_qr_code(box.id)

        assert new_code != old_code
        assert qr_codec.decode(new_code) == str(box.id)
        assert qr_codec.parse(new_code).nonce is not None
        assert await store_a.find_box_by_qr_code(old_code) is None
        assert (await store_a.find_box_by_qr_code(new_code)).id == box.id

    async def test_reissue_twice_gives_distinct_codes(self, store_a):
        box, _ = await store_a.create_box("Tools")
        first = await store_a.reissue_qr_code(box.id)
        second = await store_a.reissue_qr_code(box.id)
        assert first != second
        assert await store_a.find_box_by_qr_code(first) is None


class TestSummary:
    async def test_summary_counts_and_recent(self, store_a):
        await store_a.create_location("Garage")
        for i in range(7):
            await store_a.create_box(f"Box {i}")

        summary = await store_a.summary()
        assert summary["box_count"] == 7
        assert summary["location_count"] == 1
        assert [b.name for b in summary["recent_boxes"]] == [f"Box {i}" for i in range(6, 1, -1)]


class TestUnauthenticated:
    async def test_every_operation_rejects(self, db_session):
        store = InventoryStore(db_session, None)
        calls = [
            store.list_locations(),
            store.create_location("Garage"),
            store.get_location(uuid.uuid4()),
            store.delete_location(uuid.uuid4()),
            store.list_boxes(),
            store.get_box(uuid.uuid4()),
            store.create_box("Tools"),
            store.update_box(uuid.uuid4(), {"name": "x"}),
            store.delete_box(uuid.uuid4()),
            store.find_box_by_qr_code("BinQR:x"),
            store.reissue_qr_code(uuid.uuid4()),
            store.summary(),
        ]
        for call in calls:
            with pytest.raises(Unauthenticated):
                await call
