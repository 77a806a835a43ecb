"""Shared fakes and sample payloads for the test suite."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

# Add src to path so we can import smartshuttle
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def make_response(payload=None, status=200, text=None):
    """A stand-in for requests.Response."""
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    if payload is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = payload
    response.text = text if text is not None else str(payload)
    return response


def make_http(response=None):
    """A stand-in for AsyncRequestsSession with awaitable verbs."""
    http = MagicMock()
    http.get = AsyncMock(return_value=response)
    http.post = AsyncMock(return_value=response)
    http.request = AsyncMock(return_value=response)
    return http


def stop_payload(name="Forbes Ave at Morewood", lat=40.4443, lon=-79.9436, **extra):
    data = {
        "stop_name": name,
        "stop_lat": lat,
        "stop_lon": lon,
        "stop_code": "7117",
        "wheelchair_boarding": 1,
        "global_stop_id": f"PAAC:{name}",
    }
    data.update(extra)
    return data


def route_payload(short_name="61C", stop=None, departures=(1700000300,), vehicle=None, alerts=None, route_type=3):
    items = []
    for departure in departures:
        item = {"departure_time": departure, "is_real_time": True, "rt_trip_id": f"trip-{departure}"}
        if vehicle is not None:
            item["vehicle"] = vehicle
        items.append(item)
    return {
        "route_short_name": short_name,
        "route_long_name": "McKeesport - Homestead - Squirrel Hill - Oakland",
        "route_color": "#E21836",
        "route_type": route_type,
        "real_time_route_id": f"PAAC:{short_name}",
        "global_route_id": f"PAAC:{short_name}",
        "itineraries": [
            {
                "headsign": "Downtown",
                "closest_stop": stop or stop_payload(),
                "schedule_items": items,
            }
        ],
        "alerts": alerts or [],
    }
