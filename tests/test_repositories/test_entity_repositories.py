"""
Tests for the entity repositories.
"""

from decimal import Decimal

import pytest

from adsync.common.exceptions import DuplicateKeyError
from adsync.repositories import Repositories


@pytest.mark.asyncio
async def test_create_starts_at_version_one(repositories: Repositories) -> None:
    """Test a created record is stamped with sync bookkeeping."""
    network = await repositories.networks.create({"id": 1, "name": "Alpha"})

    assert network.id == 1
    assert network.sync_version == 1
    assert network.last_sync_at is not None
    assert network.status == "active"


@pytest.mark.asyncio
async def test_create_requires_id(repositories: Repositories) -> None:
    """Test the store never assigns ids itself."""
    with pytest.raises(ValueError):
        await repositories.networks.create({"name": "No id"})


@pytest.mark.asyncio
async def test_create_duplicate_id_rejected(repositories: Repositories) -> None:
    """Test a colliding id fails instead of overwriting."""
    await repositories.networks.create({"id": 1, "name": "Alpha"})

    with pytest.raises(DuplicateKeyError) as exc_info:
        await repositories.networks.create({"id": 1, "name": "Impostor"})

    assert exc_info.value.entity_id == 1
    assert await repositories.networks.count() == 1
    stored = await repositories.networks.find_by_id(1)
    assert stored.name == "Alpha"


@pytest.mark.asyncio
async def test_create_unknown_field_rejected(repositories: Repositories) -> None:
    """Test fields outside the table are refused."""
    with pytest.raises(ValueError, match="Unknown field"):
        await repositories.networks.create({"id": 1, "name": "Alpha", "color": "red"})


@pytest.mark.asyncio
async def test_update_missing_returns_none(repositories: Repositories) -> None:
    """Test update never creates a record."""
    assert await repositories.networks.update(99, {"name": "Ghost"}) is None
    assert await repositories.networks.count() == 0


@pytest.mark.asyncio
async def test_update_merges_and_bumps_version(repositories: Repositories) -> None:
    """Test update keeps untouched fields and increments sync_version."""
    await repositories.advertisers.create(
        {"id": 10, "name": "Acme", "network_id": 1, "email": "ads@acme.test"}
    )

    updated = await repositories.advertisers.update(10, {"name": "Acme Corp"})

    assert updated is not None
    assert updated.name == "Acme Corp"
    assert updated.email == "ads@acme.test"
    assert updated.sync_version == 2


@pytest.mark.asyncio
async def test_update_ignores_managed_fields(repositories: Repositories) -> None:
    """Test callers cannot overwrite sync_version directly."""
    await repositories.networks.create({"id": 1, "name": "Alpha"})

    updated = await repositories.networks.update(1, {"sync_version": 50, "name": "Alpha"})

    assert updated.sync_version == 2


@pytest.mark.asyncio
async def test_upsert_is_a_write_counter(repositories: Repositories) -> None:
    """Test identical upserts leave data unchanged but count every write."""
    data = {"name": "Header", "network_id": 1, "width": 728, "height": 90}

    first = await repositories.zones.upsert(5000, data)
    assert first.sync_version == 1

    await repositories.zones.upsert(5000, data)
    third = await repositories.zones.upsert(5000, data)

    assert third.sync_version == 3
    assert third.name == "Header"
    assert (third.width, third.height) == (728, 90)
    assert await repositories.zones.count() == 1


@pytest.mark.asyncio
async def test_upsert_twice_adds_two_versions(repositories: Repositories) -> None:
    """Test two upserts over an existing record raise sync_version by two."""
    await repositories.networks.create({"id": 1, "name": "Alpha"})

    await repositories.networks.upsert(1, {"name": "Alpha"})
    record = await repositories.networks.upsert(1, {"name": "Alpha"})

    assert record.sync_version == 3


@pytest.mark.asyncio
async def test_find_all_filters_and_ordering(repositories: Repositories) -> None:
    """Test equality, membership and descending order."""
    for record_id, name, status in [
        (1, "Charlie", "active"),
        (2, "Alpha", "paused"),
        (3, "Bravo", "active"),
    ]:
        await repositories.networks.create({"id": record_id, "name": name, "status": status})

    active = await repositories.networks.find_all({"status": "active"}, order_by="name")
    assert [n.name for n in active] == ["Bravo", "Charlie"]

    chosen = await repositories.networks.find_all({"id": [1, 2]}, order_by="-name")
    assert [n.id for n in chosen] == [1, 2]

    assert await repositories.networks.count({"status": "paused"}) == 1

    with pytest.raises(ValueError):
        await repositories.networks.find_all({"colour": "red"})


@pytest.mark.asyncio
async def test_delete(repositories: Repositories) -> None:
    """Test delete reports whether a record existed."""
    await repositories.networks.create({"id": 1, "name": "Alpha"})

    assert await repositories.networks.delete(1) is True
    assert await repositories.networks.delete(1) is False
    assert await repositories.networks.find_by_id(1) is None


@pytest.mark.asyncio
async def test_get_last_sync_time(repositories: Repositories) -> None:
    """Test last sync time tracks local writes."""
    assert await repositories.networks.get_last_sync_time() is None

    await repositories.networks.create({"id": 1, "name": "Alpha"})

    assert await repositories.networks.get_last_sync_time() is not None


@pytest.mark.asyncio
async def test_active_lookups(repositories: Repositories) -> None:
    """Test active-only lookups used by unscoped syncs."""
    await repositories.networks.create({"id": 1, "name": "Alpha"})
    await repositories.networks.create({"id": 2, "name": "Beta", "status": "inactive"})
    await repositories.advertisers.create({"id": 10, "name": "Acme", "network_id": 1})
    await repositories.advertisers.create(
        {"id": 11, "name": "Globex", "network_id": 2, "status": "paused"}
    )

    assert [n.id for n in await repositories.networks.get_active_networks()] == [1]
    assert [a.id for a in await repositories.advertisers.get_active_advertisers()] == [10]
    assert [a.id for a in await repositories.advertisers.get_by_network_id(2)] == [11]


@pytest.mark.asyncio
async def test_parent_lookups(repositories: Repositories) -> None:
    """Test campaign and advertisement lookups by parent."""
    await repositories.campaigns.create(
        {"id": 1, "name": "Spring", "advertiser_id": 10, "network_id": 1}
    )
    await repositories.campaigns.create(
        {"id": 2, "name": "Summer", "advertiser_id": 10, "network_id": 1, "status": "paused"}
    )
    await repositories.campaigns.create(
        {"id": 3, "name": "Launch", "advertiser_id": 20, "network_id": 2}
    )
    await repositories.advertisements.create(
        {"id": 100, "name": "Banner B", "campaign_id": 1, "network_id": 1}
    )
    await repositories.advertisements.create(
        {"id": 101, "name": "Banner A", "campaign_id": 1, "network_id": 1}
    )

    assert {c.id for c in await repositories.campaigns.get_by_advertiser_id(10)} == {1, 2}
    assert [c.id for c in await repositories.campaigns.get_active_campaigns(1)] == [1]
    assert {c.id for c in await repositories.campaigns.get_active_campaigns()} == {1, 3}
    ads = await repositories.advertisements.get_by_campaign_id(1)
    assert [a.name for a in ads] == ["Banner A", "Banner B"]
    assert await repositories.advertisements.get_by_campaign_id(3) == []


@pytest.mark.asyncio
async def test_campaign_stats_consistency(repositories: Repositories) -> None:
    """Test stats agree with count() and treat missing spend as zero."""
    campaigns = repositories.campaigns
    await campaigns.create({
        "id": 100, "name": "Spring", "network_id": 1, "status": "active",
        "spent": Decimal("120.50"), "impressions": 1000, "clicks": 25,
    })
    await campaigns.create({
        "id": 101, "name": "Summer", "network_id": 1, "status": "paused",
        "spent": Decimal("30"),
    })
    await campaigns.create({"id": 102, "name": "Draft", "network_id": 1, "status": "draft"})
    await campaigns.create({
        "id": 200, "name": "Elsewhere", "network_id": 2, "spent": Decimal("999"),
    })

    stats = await campaigns.get_campaign_stats(1)

    assert stats["total"] == await campaigns.count({"network_id": 1}) == 3
    assert stats["active"] == 1
    assert stats["paused"] == 1
    assert stats["total_spend"] == pytest.approx(150.5)
    assert stats["total_impressions"] == 1000
    assert stats["total_clicks"] == 25

    overall = await campaigns.get_campaign_stats()
    assert overall["total"] == 4
    assert overall["total_spend"] == pytest.approx(1149.5)


@pytest.mark.asyncio
async def test_campaign_stats_empty(repositories: Repositories) -> None:
    """Test stats over an empty scope are all zero."""
    stats = await repositories.campaigns.get_campaign_stats(42)

    assert stats == {
        "total": 0,
        "active": 0,
        "paused": 0,
        "total_spend": 0.0,
        "total_impressions": 0,
        "total_clicks": 0,
    }


@pytest.mark.asyncio
async def test_scoped_entity_stats(repositories: Repositories) -> None:
    """Test total/active counts per network."""
    await repositories.zones.create({"id": 1, "name": "Header", "network_id": 1})
    await repositories.zones.create({"id": 2, "name": "Footer", "network_id": 1, "status": "paused"})
    await repositories.zones.create({"id": 3, "name": "Sidebar", "network_id": 2})

    assert await repositories.zones.get_zone_stats(1) == {"total": 2, "active": 1}
    assert await repositories.zones.get_zone_stats() == {"total": 3, "active": 2}


@pytest.mark.asyncio
async def test_search_campaigns(repositories: Repositories) -> None:
    """Test case-insensitive name search."""
    await repositories.campaigns.create({"id": 1, "name": "Spring Sale", "network_id": 1})
    await repositories.campaigns.create({"id": 2, "name": "Summer SALE", "network_id": 2})
    await repositories.campaigns.create({"id": 3, "name": "Launch", "network_id": 1})

    results = await repositories.campaigns.search_campaigns("sale")
    assert [c.id for c in results] == [1, 2]

    scoped = await repositories.campaigns.search_campaigns("sale", network_id=2)
    assert [c.id for c in scoped] == [2]


@pytest.mark.asyncio
async def test_record_counts(repositories: Repositories) -> None:
    """Test per-type counts cover every entity table."""
    await repositories.networks.create({"id": 1, "name": "Alpha"})
    await repositories.advertisements.create({"id": 7, "name": "Banner"})

    assert await repositories.record_counts() == {
        "networks": 1,
        "advertisers": 0,
        "campaigns": 0,
        "advertisements": 1,
        "zones": 0,
    }

    with pytest.raises(ValueError):
        repositories.for_type("full")
