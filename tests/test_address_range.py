"""Tests for candidate address generation, port parsing and id derivation."""

from __future__ import annotations

import pytest

from discovery.address_range import (
    AddressRange,
    generate_range,
    get_id,
    ip_to_long,
    long_to_ip,
    parse_ports,
)


pytestmark = pytest.mark.unit


class TestIpConversion:
    def test_to_long(self):
        assert ip_to_long("192.168.1.1") == 0xC0A80101

    def test_from_long(self):
        assert long_to_ip(0xC0A80101) == "192.168.1.1"

    def test_high_addresses_stay_unsigned(self):
        assert ip_to_long("255.255.255.255") == 0xFFFFFFFF
        assert long_to_ip(0xFFFFFFFF) == "255.255.255.255"

    def test_malformed_maps_to_zero(self):
        assert ip_to_long("not-an-ip") == 0
        assert ip_to_long("300.1.1.1") == 0
        assert ip_to_long(None) == 0


class TestAddressRange:
    def test_single_address(self):
        assert list(AddressRange("10.0.0.5", "10.0.0.5")) == ["10.0.0.5"]

    def test_end_defaults_to_start(self):
        assert generate_range("10.0.0.5") == ["10.0.0.5"]

    def test_inclusive_ascending(self):
        assert generate_range("192.168.1.254", "192.168.2.1") == [
            "192.168.1.254", "192.168.1.255", "192.168.2.0", "192.168.2.1",
        ]

    def test_reversed_range_is_swapped(self):
        forward = generate_range("10.0.0.1", "10.0.0.4")
        backward = generate_range("10.0.0.4", "10.0.0.1")
        assert backward == forward
        assert forward[0] == "10.0.0.1"

    def test_len_matches_iteration(self):
        rng = AddressRange("10.0.0.1", "10.0.1.0")
        assert len(rng) == 256
        assert len(list(rng)) == 256

    def test_iteration_is_restartable(self):
        rng = AddressRange("10.0.0.1", "10.0.0.3")
        assert list(rng) == list(rng)

    def test_iteration_is_lazy(self):
        rng = AddressRange("0.0.0.1", "255.255.255.254")
        it = iter(rng)
        assert next(it) == "0.0.0.1"
        assert next(it) == "0.0.0.2"

    def test_degenerate_range_falls_back_to_start(self):
        rng = AddressRange("garbage", "also garbage")
        assert rng.is_degenerate
        assert rng.candidates() == ["garbage"]

    def test_malformed_start_with_valid_end_does_not_widen(self):
        rng = AddressRange("192.168.1.l", "192.168.1.20")
        assert rng.malformed
        assert rng.is_degenerate
        assert len(rng) == 1
        assert rng.candidates() == ["192.168.1.l"]

    def test_malformed_end_scans_start_only(self):
        rng = AddressRange("192.168.1.10", "192.168.1.2O")
        assert rng.is_degenerate
        assert rng.candidates() == ["192.168.1.10"]

    def test_non_string_start_yields_nothing(self):
        assert AddressRange(None).candidates() == []
        assert AddressRange(42, "10.0.0.1").candidates() == []

    def test_explicit_zero_address_is_degenerate(self):
        assert generate_range("0.0.0.0") == ["0.0.0.0"]


class TestParsePorts:
    def test_comma_string(self):
        assert parse_ports("80, 7575, 8000,8080 ,8081") == [80, 7575, 8000, 8080, 8081]

    def test_list_of_mixed(self):
        assert parse_ports([80, "8080"]) == [80, 8080]

    def test_invalid_entries_skipped(self):
        assert parse_ports("80, abc, 70000, 0, 8080") == [80, 8080]

    def test_duplicates_dropped(self):
        assert parse_ports("80, 80, 8080") == [80, 8080]

    def test_empty_uses_default(self):
        assert parse_ports(None, [80, 8000]) == [80, 8000]
        assert parse_ports("", [80]) == [80]

    def test_single_int(self):
        assert parse_ports(554) == [554]


class TestGetId:
    def test_deterministic(self):
        assert get_id("192.168.1.5:80") == get_id("192.168.1.5:80")
        assert get_id("192.168.1.5:80") == "192_168_1_5_80"

    def test_no_collision_between_shifted_fields(self):
        assert get_id("192.168.1.5:80") != get_id("192.168.15.80:0")

    def test_distinct_ports(self):
        assert get_id("10.0.0.1:80") != get_id("10.0.0.1:8080")
