"""Tests for bearer token discovery."""

import pytest

from token_extractor.auth.token_capture import (
    NetworkTokenObserver,
    TokenSlot,
    extract_bearer_token,
    find_token_in_value,
    scan_storage,
)
from token_extractor.models import TokenSource


class TestTokenSlot:
    def test_first_offer_wins(self):
        slot = TokenSlot()
        assert slot.offer("one", TokenSource.NETWORK)
        assert not slot.offer("two", TokenSource.NETWORK)
        assert slot.token.value == "one"

    def test_empty_value_ignored(self):
        slot = TokenSlot()
        assert not slot.offer("", TokenSource.LOCAL_STORAGE)
        assert not slot.is_set


class TestExtractBearerToken:
    @pytest.mark.parametrize("headers, expected", [
        ({"authorization": "Bearer abc"}, "abc"),
        ({"Authorization": "Bearer abc"}, "abc"),
        ({"authorization": "Basic dXNlcjpwYXNz"}, None),
        ({"authorization": "Bearer "}, None),
        ({"accept": "application/json"}, None),
    ])
    def test_header_forms(self, headers, expected):
        assert extract_bearer_token(headers) == expected


class TestNetworkTokenObserver:
    def test_blocked_request_still_inspected(self):
        slot = TokenSlot()
        observer = NetworkTokenObserver(slot)

        allowed = observer.handle({"authorization": "Bearer from-image"}, "image")

        assert not allowed
        assert slot.token.value == "from-image"
        assert observer.requests_blocked == 1

    def test_blocking_disabled(self):
        observer = NetworkTokenObserver(TokenSlot(), block_resources=False)
        assert observer.handle({}, "font")
        assert observer.requests_blocked == 0

    @pytest.mark.parametrize("resource_type", ["document", "script", "xhr", "fetch"])
    def test_essential_types_continue(self, resource_type):
        observer = NetworkTokenObserver(TokenSlot())
        assert observer.handle({}, resource_type)

    def test_later_bearer_does_not_replace_first(self):
        slot = TokenSlot()
        observer = NetworkTokenObserver(slot)
        observer.handle({"authorization": "Bearer first"}, "xhr")
        observer.handle({"authorization": "Bearer second"}, "xhr")

        assert slot.token.value == "first"
        assert observer.requests_seen == 2


class TestFindTokenInValue:
    @pytest.mark.parametrize("value, expected", [
        ("eyJhbGciOiJIUzI1NiJ9.payload.sig", "eyJhbGciOiJIUzI1NiJ9.payload.sig"),
        ('{"access_token":"xyz123"}', "xyz123"),
        ('{"id_token":"id-1","token":"t-1"}', "id-1"),
        ('{"access_token":"","token":"t-1"}', "t-1"),
        ('{"access_token":42,"token":"t-2"}', "t-2"),
        ('{"user":"bob"}', None),
        ('["eyJ"]', None),
        ("dark", None),
        ("", None),
        (None, None),
    ])
    def test_heuristic(self, value, expected):
        assert find_token_in_value(value) == expected


class TestScanStorage:
    def test_local_storage_checked_before_session_storage(self):
        found = scan_storage(
            [("a", "plain"), ("auth", '{"token":"local"}')],
            [("auth", "eyJsession")],
        )
        assert found.value == "local"
        assert found.source is TokenSource.LOCAL_STORAGE

    def test_enumeration_order_within_area(self):
        found = scan_storage([("first", "eyJone"), ("second", "eyJtwo")], [])
        assert found.value == "eyJone"

    def test_session_storage_fallback(self):
        found = scan_storage([], [("oidc", '{"id_token":"sid"}')])
        assert found.source is TokenSource.SESSION_STORAGE

    def test_nothing_found(self):
        assert scan_storage([("k", None)], [("x", "1")]) is None
