"""Integration test fixtures: a 360Giving API snapshot served through respx."""

import json
from pathlib import Path

import httpx
import pytest
import respx

from funder_pipeline.threesixty import DEFAULT_BASE_URL

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _load_json(name: str):
    with open(FIXTURES_DIR / name) as f:
        return json.load(f)


@pytest.fixture
def threesixty_snapshot():
    return _load_json("threesixty_snapshot.json")


def mock_threesixty_api(snapshot, router=respx):
    """Register routes for every organisation, detail and grants_made page in ``snapshot``."""
    router.get(f"{DEFAULT_BASE_URL}/org/").mock(
        return_value=httpx.Response(200, json=snapshot["organisations"])
    )
    for org_id, detail in snapshot["details"].items():
        router.get(f"{DEFAULT_BASE_URL}/org/{org_id}/").mock(
            return_value=httpx.Response(200, json=detail)
        )
    routes = {}
    for org_id, page in snapshot["grants_made"].items():
        routes[org_id] = router.get(f"{DEFAULT_BASE_URL}/org/{org_id}/grants_made/").mock(
            return_value=httpx.Response(200, json=page)
        )
    return routes
