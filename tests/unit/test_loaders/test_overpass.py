import pytest
import requests
from unittest.mock import MagicMock, patch
from core.models import BoundingBox
from core.settings import EngineSettings
from loaders.http import ProviderFailure
from loaders.overpass import OverpassBuildingLoader, parse_buildings
from loaders.throttle import RateLimiter

BOUNDS = BoundingBox(south=23.80, west=90.40, north=23.81, east=90.41)

ELEMENTS = {
    "elements": [
        {
            "type": "way",
            "id": 101,
            "geometry": [
                {"lat": 23.8050, "lon": 90.4050},
                {"lat": 23.8050, "lon": 90.4053},
                {"lat": 23.8053, "lon": 90.4053},
                {"lat": 23.8053, "lon": 90.4050},
                {"lat": 23.8050, "lon": 90.4050},
            ],
        },
        {"type": "way", "id": 102},  # no geometry
    ]
}


@pytest.fixture
def mock_loader():
    with patch('requests.Session') as mock_session:
        loader = OverpassBuildingLoader(mock_session.return_value, RateLimiter(min_interval=0), EngineSettings())
        loader.session = mock_session.return_value
        yield loader


def test_parse_buildings():
    buildings = parse_buildings(ELEMENTS)
    assert len(buildings) == 1
    building = buildings[0]
    assert building.id == "101"
    assert 900 < building.area < 1100
    assert building.centroid.lat == pytest.approx(23.80515)


def test_fetch_buildings_posts_query(mock_loader):
    response = MagicMock()
    response.json.return_value = ELEMENTS
    mock_loader.session.post.return_value = response

    result = mock_loader.fetch_buildings(BOUNDS)

    assert len(result.value) == 1
    mock_loader.session.post.assert_called_once()
    query = mock_loader.session.post.call_args.kwargs["data"]["data"]
    assert query == '[out:json][timeout:25];way["building"](23.8,90.4,23.81,90.41);out geom;'


def test_fetch_buildings_failure(mock_loader):
    mock_loader.session.post.side_effect = requests.Timeout()
    result = mock_loader.fetch_buildings(BOUNDS)
    assert isinstance(result, ProviderFailure)


def test_fetch_buildings_not_cached(mock_loader):
    """Each viewport fetch is a full fresh snapshot."""
    response = MagicMock()
    response.json.return_value = ELEMENTS
    mock_loader.session.post.return_value = response

    mock_loader.fetch_buildings(BOUNDS)
    mock_loader.fetch_buildings(BOUNDS)
    assert mock_loader.session.post.call_count == 2
