"""
Remote catalog client tests — urllib calls are patched, no network.
"""

import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from glassquote.errors import RemoteCatalogError
from glassquote.remote_catalog import RemoteCatalogClient
from glassquote.schemas import GlassCatalogEntry, PriceRequest


def _response(payload):
    resp = MagicMock()
    resp.read.return_value = json.dumps(payload).encode("utf-8")
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


def _client():
    return RemoteCatalogClient(base_url="https://catalog.example.com/api/", token="secret", timeout=7)


def test_requires_base_url():
    with pytest.raises(RemoteCatalogError):
        RemoteCatalogClient(base_url="")


def test_get_glass_types():
    payload = [{"id": "clear", "name": "Clear Glass", "productTypes": []}]
    with patch("urllib.request.urlopen", return_value=_response(payload)) as mock_open:
        types = _client().get_glass_types()

    assert types[0].name == "Clear Glass"
    req = mock_open.call_args[0][0]
    assert req.full_url == "https://catalog.example.com/api/glass/types"
    assert req.get_header("Authorization") == "Bearer secret"
    assert mock_open.call_args[1]["timeout"] == 7


def test_get_suppliers_and_options():
    option = {"id": "arrissed", "categoryId": "cat-edgework", "name": "Arrissed",
              "flatPricing": {"retail": 8}}
    with patch("urllib.request.urlopen", side_effect=[
        _response([{"id": "s1", "name": "Acme"}]),
        _response([option]),
    ]):
        client = _client()
        suppliers = client.get_suppliers()
        options = client.get_processing_options()

    assert suppliers[0].id == "s1"
    assert options[0].pricing.kind == "flat"


def test_calculate_price_encodes_selections():
    result = {
        "total": 696.0, "base_total": 600.0, "processing_total": 96.0, "template_cost": 0.0,
        "area_sqm": 2.0, "perimeter_m": 6.0, "unit_base_price": 150.0, "quantity": 2,
        "customer_tier": "retail", "breakdown": [], "warnings": [],
    }
    request = PriceRequest(
        glass_type_id="clear", thickness_mm=10, width_mm=1000, height_mm=2000, quantity=2,
        processing_selections=[{"category_id": "cat-edgework", "option_id": "polished-edge"}],
    )
    with patch("urllib.request.urlopen", return_value=_response(result)) as mock_open:
        priced = _client().calculate_price(request)

    assert priced.total == 696.0
    url = mock_open.call_args[0][0].full_url
    assert "glass_type_id=clear" in url
    assert "processing=cat-edgework%3Apolished-edge" in url


def test_create_glass_type_posts_json():
    entry = GlassCatalogEntry(id="mirror", name="Mirror")
    with patch("urllib.request.urlopen", return_value=_response(entry.model_dump(mode="json"))) as mock_open:
        saved = _client().create_glass_type(entry)

    req = mock_open.call_args[0][0]
    assert req.get_method() == "POST"
    assert json.loads(req.data)["id"] == "mirror"
    assert saved.id == "mirror"


def test_http_error_is_wrapped():
    err = urllib.error.HTTPError("https://catalog.example.com/api/glass/types", 503,
                                 "Service Unavailable", {}, None)
    with patch("urllib.request.urlopen", side_effect=err):
        with pytest.raises(RemoteCatalogError, match="503"):
            _client().get_glass_types()


def test_unreachable_host_is_wrapped():
    with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("timed out")):
        with pytest.raises(RemoteCatalogError, match="timed out"):
            _client().get_suppliers()
