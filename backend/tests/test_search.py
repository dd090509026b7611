import pytest
import pytest_asyncio

from core.errors import ValidationError
from core.search import ALL_LOCATIONS, search_boxes


@pytest_asyncio.fixture
async def inventory(store_a):
    garage = await store_a.create_location("Garage")
    attic = await store_a.create_location("Attic")
    tools, _ = await store_a.create_box("Tools", description="Wrenches and drills", location_id=garage.id, tags=["hammer"])
    paint, _ = await store_a.create_box("Paint cans", location_id=garage.id)
    xmas, _ = await store_a.create_box("Christmas decorations", description="Lights, 100% tangled", location_id=attic.id)
    loose, _ = await store_a.create_box("Loose cables")
    return {
        "garage": garage,
        "attic": attic,
        "tools": tools,
        "paint": paint,
        "xmas": xmas,
        "loose": loose,
    }


def ids(boxes):
    return [b.id for b in boxes]


async def test_no_filter_matches_list_boxes(store_a, inventory):
    assert ids(await search_boxes(store_a, "", ALL_LOCATIONS)) == ids(await store_a.list_boxes())
    assert len(await search_boxes(store_a)) == 4


async def test_location_filter(store_a, inventory):
    results = await search_boxes(store_a, "", inventory["garage"].id)
    assert set(ids(results)) == {inventory["tools"].id, inventory["paint"].id}

    results = await search_boxes(store_a, "", str(inventory["attic"].id))
    assert ids(results) == [inventory["xmas"].id]


async def test_text_matches_name_or_description_case_insensitive(store_a, inventory):
    assert ids(await search_boxes(store_a, "TOOLS")) == [inventory["tools"].id]
    assert ids(await search_boxes(store_a, "drill")) == [inventory["tools"].id]
    assert set(ids(await search_boxes(store_a, "  CAN  "))) == {inventory["paint"].id}


async def test_tags_are_not_searched(store_a, inventory):
    assert await search_boxes(store_a, "hammer") == []


async def test_wildcards_are_literal(store_a, inventory):
    assert ids(await search_boxes(store_a, "100%")) == [inventory["xmas"].id]
    assert ids(await search_boxes(store_a, "%")) == [inventory["xmas"].id]
    assert await search_boxes(store_a, "_") == []


async def test_text_and_location_combined(store_a, inventory):
    assert ids(await search_boxes(store_a, "paint", inventory["garage"].id)) == [inventory["paint"].id]
    assert await search_boxes(store_a, "paint", inventory["attic"].id) == []


async def test_results_are_subset_of_filtered_list(store_a, inventory):
    everything = await store_a.list_boxes()
    loc = inventory["garage"].id
    q = "s"
    expected = [
        b.id for b in everything
        if b.location_id == loc
        and (q in b.name.lower() or q in (b.description or "").lower())
    ]
    assert ids(await search_boxes(store_a, q, loc)) == expected


async def test_ordering_and_idempotence(store_a, inventory):
    await store_a.update_box(inventory["tools"].id, {"description": "Wrenches, drills and saws"})
    first = ids(await search_boxes(store_a, ""))
    second = ids(await search_boxes(store_a, ""))
    assert first == second
    assert first[0] == inventory["tools"].id


async def test_invalid_location_id(store_a, inventory):
    with pytest.raises(ValidationError):
        await search_boxes(store_a, "", "not-a-uuid")


async def test_other_users_boxes_excluded(store_b, inventory):
    assert await search_boxes(store_b, "") == []
