#!/usr/bin/env python3
"""
Tests for the backend API client. The HTTP session is a mock; no network.
"""

import json
from unittest import mock

import requests

from catalog_api import CatalogClient, FeederSession, UploadFile

BASE_URL = "http://api.test"


def make_client(body=None, status_code=200, error=None, session=FeederSession(access_token="tok")):
    http = mock.Mock()
    if error is not None:
        http.request.side_effect = error
    else:
        response = mock.Mock(status_code=status_code)
        if isinstance(body, Exception):
            response.json.side_effect = body
        else:
            response.json.return_value = body
        http.request.return_value = response
    return CatalogClient(base_url=BASE_URL, session=session, timeout=None, http=http)


def test_get_all_products():
    products = [{"postId": "p1", "name": "Onyx"}]
    client = make_client({"success": True, "data": products})

    result = client.get_all_products()

    assert result.success
    assert result.data == products
    client.http.request.assert_called_once_with(
        "GET", f"{BASE_URL}/api/getAllProducts",
        headers={"Authorization": "Bearer tok"}, timeout=None,
    )


def test_no_auth_header_without_session():
    client = make_client({"success": True, "data": []}, session=None)
    client.get_all_products()
    assert client.http.request.call_args.kwargs["headers"] == {}


def test_missing_data_becomes_empty_list():
    result = make_client({"success": True}).get_all_products()
    assert result.success
    assert result.data == []


def test_missing_success_flag_is_failure():
    result = make_client({"data": [], "msg": "Token expired"}).get_all_products()
    assert not result.success
    assert result.message == "Token expired"


def test_unsuccessful_without_message_uses_default():
    result = make_client({"success": False}, status_code=500).get_all_products()
    assert not result.success
    assert result.message == "Error fetching products"
    assert result.status_code == 500


def test_transport_error():
    result = make_client(error=requests.ConnectionError("refused")).get_all_products()
    assert not result.success
    assert result.message == "Error fetching products"


def test_non_json_body():
    result = make_client(ValueError("no json"), status_code=502).get_all_products()
    assert not result.success
    assert result.status_code == 502


def test_product_by_id_unwraps_list():
    client = make_client({"success": True, "data": [{"postId": "p1"}]})
    result = client.get_product_by_id("p1")
    assert result.data == {"postId": "p1"}
    assert client.http.request.call_args.kwargs["params"] == {"id": "p1"}


def test_product_by_id_empty():
    result = make_client({"success": True, "data": []}).get_product_by_id("p1")
    assert not result.success
    assert result.message == "No data found"


def test_create_product_sends_multipart():
    client = make_client({"success": True, "data": {"postId": "p9"}})
    image = UploadFile("slab.png", b"png-bytes", "image/png")

    result = client.create_product({"name": "Onyx", "price": "120"}, [image])

    assert result.data == {"postId": "p9"}
    args, kwargs = client.http.request.call_args
    assert args == ("POST", f"{BASE_URL}/api/create-post")
    assert ("name", (None, "Onyx")) in kwargs["files"]
    assert ("images", ("slab.png", b"png-bytes", "image/png")) in kwargs["files"]


def test_update_product_keeps_existing_images():
    client = make_client({"success": True})
    client.update_product("p1", {"name": "Onyx"}, [], existing_images=["https://cdn/a.jpg"])

    args, kwargs = client.http.request.call_args
    assert args == ("POST", f"{BASE_URL}/api/updateProduct/p1")
    parts = dict(kwargs["files"])
    assert json.loads(parts["existingImages"][1]) == ["https://cdn/a.jpg"]


def test_update_price_messages():
    client = make_client({"success": True})
    assert client.update_price("p1", 99.5).success
    assert client.http.request.call_args.kwargs["json"] == {"price": 99.5}

    refused = make_client({"success": False}).update_price("p1", 99.5)
    assert refused.message == "Failed to update price"

    unreachable = make_client(error=requests.Timeout()).update_price("p1", 99.5)
    assert unreachable.message == "Failed to update price. Please try again."


def test_profile_requires_session():
    client = make_client({"success": True}, session=None)
    result = client.get_feeder_profile()
    assert not result.success
    client.http.request.assert_not_called()


def test_session_from_login_response():
    feeder = FeederSession.from_login_response({
        "accessToken": "a", "refreshToken": "r",
        "feeder": {"name": "Ravi", "email": "ravi@example.com", "feederId": "F1"},
    })
    assert feeder.is_authenticated
    assert FeederSession.from_dict(feeder.to_dict()) == feeder
    assert feeder.feeder_id == "F1"


def test_close_releases_http_session():
    client = make_client({"success": True})
    client.close()
    client.http.close.assert_called_once()
