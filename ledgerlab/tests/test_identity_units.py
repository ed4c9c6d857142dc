from decimal import Decimal

import pytest

from ledgerlab.errors import InvalidArgument
from ledgerlab.identity import NULL_ADDRESS, derive_address, is_null, normalize_address, short
from ledgerlab.units import WEI_PER_ETHER, ether_to_wei, format_ether, wei_to_ether


def test_normalize_address_forms():
    a = "0x" + "AB" * 20
    assert normalize_address(a) == "0x" + "ab" * 20
    assert normalize_address("0X" + "ab" * 20) == "0x" + "ab" * 20
    assert normalize_address(bytes(range(20))) == "0x" + bytes(range(20)).hex()


@pytest.mark.parametrize(
    "bad",
    ["", "0x", "ab" * 20, "0x" + "a" * 39, "0x" + "a" * 41, "0x" + "g" * 40, b"\x00" * 19, 123, None],
)
def test_normalize_address_rejects(bad):
    with pytest.raises(InvalidArgument):
        normalize_address(bad)


def test_derived_addresses_are_stable_and_distinct():
    a = derive_address("ledger:payments")
    assert a == derive_address("ledger:payments")
    assert a != derive_address("registry:payments")
    assert normalize_address(a) == a
    assert is_null(NULL_ADDRESS) and not is_null(a)


def test_short():
    a = derive_address("x")
    s = short(a)
    assert s.startswith(a[:7]) and s.endswith(a[-5:])
    assert short("0x12") == "0x12"


@pytest.mark.parametrize(
    "ether,wei",
    [
        ("1", WEI_PER_ETHER),
        ("1.5", 1_500_000_000_000_000_000),
        ("0.000000000000000001", 1),
        (0, 0),
        (Decimal("2.25"), 2_250_000_000_000_000_000),
        ("123456789012345678901234567890", 123456789012345678901234567890 * WEI_PER_ETHER),
        ("1e-18", 1),
    ],
)
def test_ether_to_wei(ether, wei):
    assert ether_to_wei(ether) == wei


@pytest.mark.parametrize("bad", ["-1", "abc", "0.0000000000000000001", "NaN", "Infinity", 1.5, True])
def test_ether_to_wei_rejects(bad):
    with pytest.raises(InvalidArgument):
        ether_to_wei(bad)


def test_wei_to_ether_and_format():
    assert wei_to_ether(1) == Decimal("1E-18")
    assert format_ether(1_500_000_000_000_000_000) == "1.5"
    assert format_ether(0) == "0"
    assert format_ether(WEI_PER_ETHER * 10**12) == "1000000000000"
    with pytest.raises(InvalidArgument):
        wei_to_ether("1")
