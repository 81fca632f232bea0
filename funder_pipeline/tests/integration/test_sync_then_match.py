"""Integration test: sync from a 360Giving snapshot, then match a charity.

HTTP is served by respx, the store is in memory and the scoring service is a
mock; the client, rate limiter, orchestrator, cache and matcher are real.
"""

import json
from datetime import timedelta
from unittest.mock import Mock

import pytest
import respx

from funder_pipeline.matching import FunderMatcher, MatchCache
from funder_pipeline.models import SyncOptions, SyncStatus, SyncType
from funder_pipeline.sync import SyncOrchestrator
from funder_pipeline.threesixty import RateLimiter, ThreeSixtyGivingClient

from ..conftest import utc
from .conftest import mock_threesixty_api

LONDON_YOUTH = "GB-CHC-1093186"
NORTHERN_ARTS = "GB-GOR-PC390"
SOUTHWARK = "GB-CHC-1165432"


def _scored(org_id, score):
    return {
        "funder_org_id": org_id,
        "match_score": score,
        "score_breakdown": {
            "mission_alignment": score,
            "geographic_fit": score,
            "size_compatibility": score,
            "activity_level": score,
            "historical_precedent": score,
        },
        "reasoning": "Evidence from recent grants",
        "similar_charities_funded": [],
    }


@pytest.mark.asyncio
async def test_full_sync_then_match_then_incremental_sync(threesixty_snapshot, store, clock, charity_profile):
    cache = MatchCache(store, clock=clock)

    # Full sync
    with respx.mock:
        routes = mock_threesixty_api(threesixty_snapshot)
        async with ThreeSixtyGivingClient(RateLimiter(min_interval=0)) as client:
            first = await SyncOrchestrator(client, store, cache=cache, clock=clock).run_sync(
                SyncOptions(max_organisations=10)
            )

    assert first.sync_type is SyncType.FULL
    assert first.organisations_synced == 3
    assert first.grants_synced == 4
    assert routes[LONDON_YOUTH].call_count == 1

    assert store.organisations[LONDON_YOUTH].is_funder is True
    assert store.organisations[NORTHERN_ARTS].is_funder is True
    assert store.organisations[NORTHERN_ARTS].is_recipient is True
    assert store.organisations[SOUTHWARK].is_funder is False
    assert store.organisations[LONDON_YOUTH].last_grant_made_date == utc(2024, 4, 18)

    mentoring = store.grants["360G-LYF-2024-0117"]
    assert mentoring.recipient_org_id == SOUTHWARK
    assert mentoring.beneficiary_location[0].country_code == "GB"
    assert store.grants["360G-LYF-2022-0412"].recipient_org_id is None
    # No funder listed on the record: attributed to the funder being synced
    assert store.grants["360G-NAC-2024-004"].funder_org_id == NORTHERN_ARTS

    # Match
    scoring = Mock()
    scoring.complete = Mock(
        side_effect=[
            json.dumps([_scored(NORTHERN_ARTS, 40), _scored(LONDON_YOUTH, 91)]),
            json.dumps([_scored(LONDON_YOUTH, 89)]),
        ]
    )
    matcher = FunderMatcher(store, scoring, cache)

    matches = matcher.match_funders(charity_profile)
    assert [m.funder.org_id for m in matches] == [LONDON_YOUTH, NORTHERN_ARTS]
    prompt = scoring.complete.call_args.args[1]
    assert "After-school mentoring - £30,000 (2024-04-18)" in prompt
    assert "Recipient: GB-CHC-1165432" in prompt

    assert matcher.match_funders(charity_profile) == matches
    assert scoring.complete.call_count == 1

    # Incremental sync: nothing new, but cached matches are invalidated
    clock.now += timedelta(days=1)
    # The organisation routes go unused: incremental runs skip that phase
    with respx.mock(assert_all_called=False) as router:
        routes = mock_threesixty_api(threesixty_snapshot, router)
        async with ThreeSixtyGivingClient(RateLimiter(min_interval=0)) as client:
            second = await SyncOrchestrator(client, store, cache=cache, clock=clock).run_sync()

    assert second.sync_type is SyncType.INCREMENTAL
    assert second.organisations_synced == 0
    assert second.grants_synced == 0
    assert second.grants_skipped == 4
    assert routes[NORTHERN_ARTS].call_count == 1
    assert len(store.grants) == 4
    assert [log.status for log in store.sync_logs] == [SyncStatus.COMPLETED, SyncStatus.COMPLETED]
    assert store.cache == {}

    rescored = matcher.match_funders(charity_profile)
    assert scoring.complete.call_count == 2
    assert [m.match_score for m in rescored] == [89]


@pytest.mark.asyncio
async def test_bad_records_in_api_pages_do_not_discard_their_page(threesixty_snapshot, store, clock):
    threesixty_snapshot["organisations"]["results"].insert(1, {"org_id": "GB-CHC-0000000", "name": None})
    youth_grants = threesixty_snapshot["grants_made"][LONDON_YOUTH]["results"]
    youth_grants.insert(0, {"grant_id": "360G-LYF-BAD-1", "data": {"amountAwarded": -5}})
    youth_grants.append({"grant_id": "360G-LYF-BAD-2", "data": {"awardDate": "not a date"}})

    with respx.mock:
        mock_threesixty_api(threesixty_snapshot)
        async with ThreeSixtyGivingClient(RateLimiter(min_interval=0)) as client:
            result = await SyncOrchestrator(client, store, clock=clock).run_sync(
                SyncOptions(max_organisations=10)
            )

    assert result.organisations_synced == 3
    assert result.organisations_failed == 1
    assert result.grants_synced == 4
    assert result.grants_failed == 2
    assert "360G-LYF-BAD-1" not in store.grants
    assert "360G-LYF-2024-0117" in store.grants
    assert store.sync_logs[0].status is SyncStatus.COMPLETED
