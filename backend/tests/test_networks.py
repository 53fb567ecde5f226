import pytest

from datagod.utils.networks import (
    AT_BIGTIME,
    AT_ISHARE,
    MTN,
    TELECEL,
    resolve_network,
    supported_networks,
)
from datagod.utils.phone import is_valid_phone, normalize_phone, to_international


class TestResolveNetwork:
    @pytest.mark.parametrize("name, route", [
        ("MTN", MTN),
        ("mtn", MTN),
        ("AT - iShare", AT_ISHARE),
        ("at-ishare", AT_ISHARE),
        ("AT_ISHARE", AT_ISHARE),
        ("AT - BigTime", AT_BIGTIME),
        ("at big time", AT_BIGTIME),
        ("Telecel", TELECEL),
        (" TELECEL ", TELECEL),
    ])
    def test_aliases(self, name, route):
        assert resolve_network(name) == route

    @pytest.mark.parametrize("name", ["Glo", "", None, "AT Premium"])
    def test_unknown(self, name):
        assert resolve_network(name) is None

    def test_routes_carry_provider_codes_and_settings(self):
        assert MTN.setting_key == "mtn_auto_fulfillment_enabled"
        assert AT_ISHARE.setting_key == "auto_fulfillment_enabled"
        assert AT_ISHARE.provider_code == "AT" and not AT_ISHARE.big_time
        assert AT_BIGTIME.provider_code == "AT" and AT_BIGTIME.big_time
        assert TELECEL.provider_code == "TELECEL"

    def test_supported_networks_listing(self):
        assert supported_networks() == sorted(["MTN", "AT-iShare", "AT-BigTime", "Telecel"])


class TestPhone:
    @pytest.mark.parametrize("raw, local", [
        ("0241234567", "0241234567"),
        ("+233 24 123 4567", "0241234567"),
        ("233241234567", "0241234567"),
        ("241234567", "0241234567"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize(self, raw, local):
        assert normalize_phone(raw) == local

    def test_validity(self):
        assert is_valid_phone("+233241234567")
        assert not is_valid_phone("02412")

    def test_international(self):
        assert to_international("0241234567") == "233241234567"
