import pytest
from unittest.mock import MagicMock, patch
from core.geometry import GeoPoint
from core.models import BoundingBox
from core.result import HardFailure
from core.settings import EngineSettings
from loaders.http import ProviderFailure
from loaders.openaq import OpenAQLoader, group_stations
from loaders.throttle import RateLimiter


def _reading(location_id, name, parameter, value, lat=23.8, lng=90.4):
    return {
        "locationId": location_id,
        "location": name,
        "parameter": {"name": parameter, "units": "µg/m³"},
        "value": value,
        "coordinates": {"latitude": lat, "longitude": lng},
        "datetime": {"utc": "2025-06-01T00:00:00Z"},
    }


RESULTS = [
    _reading(1, "Agargaon", "pm25", 20.0),
    _reading(1, "Agargaon", "pm10", 60.0),
    _reading(2, "US Embassy", "pm25", 80.0),
    _reading(3, "No PM2.5", "o3", 40.0),
    {"locationId": 4, "parameter": "pm25", "value": 10.0},  # no coordinates
]


@pytest.fixture
def mock_loader():
    with patch('requests.Session') as mock_session:
        settings = EngineSettings(openaq_api_key="test-key")
        yield OpenAQLoader(mock_session.return_value, RateLimiter(min_interval=0), settings)


def test_group_stations():
    stations = group_stations(RESULTS)
    assert [s.id for s in stations] == ["2", "1"]
    embassy, agargaon = stations
    assert embassy.aqi > agargaon.aqi
    assert set(agargaon.measurements) == {"pm25", "pm10"}
    assert agargaon.measurements["pm25"].last_updated == "2025-06-01T00:00:00Z"
    assert all(s.source_type == "station" for s in stations)


def test_fetch_with_bounds(mock_loader):
    response = MagicMock()
    response.json.return_value = {"results": RESULTS}
    mock_loader.session.get.return_value = response

    bounds = BoundingBox(south=23.7, west=90.3, north=23.9, east=90.5)
    result = mock_loader.fetch_stations(bounds=bounds)

    assert len(result.value) == 2
    kwargs = mock_loader.session.get.call_args.kwargs
    assert kwargs["params"]["bbox"] == "90.3,23.7,90.5,23.9"
    assert kwargs["params"]["parameters_id"] == 2
    assert kwargs["headers"]["X-API-Key"] == "test-key"
    assert kwargs["timeout"] == 15.0


def test_fetch_with_center(mock_loader):
    response = MagicMock()
    response.json.return_value = {"results": []}
    mock_loader.session.get.return_value = response

    result = mock_loader.fetch_stations(center=GeoPoint(23.8, 90.4))
    assert result.value == []
    params = mock_loader.session.get.call_args.kwargs["params"]
    assert params["coordinates"] == "23.8,90.4"
    assert params["radius"] == 25000


def test_missing_api_key_skips_request():
    session = MagicMock()
    loader = OpenAQLoader(session, RateLimiter(min_interval=0), EngineSettings(openaq_api_key=None))
    result = loader.fetch_stations(center=GeoPoint(23.8, 90.4))
    assert isinstance(result, ProviderFailure)
    session.get.assert_not_called()


def test_requires_area(mock_loader):
    with pytest.raises(HardFailure):
        mock_loader.fetch_stations()
