import pytest

from tokenscope.chains import detect_chain, is_bsc_address, is_solana_address, normalize_address

from conftest import BSC_ADDRESS, SOL_ADDRESS


@pytest.mark.parametrize(
    "address",
    [BSC_ADDRESS, "0xABCDEF", "0x1", "  0xdeadBEEF  ", "0x12zz", "0X" + "AB" * 20],
)
def test_hex_prefixed_addresses_are_bsc(address):
    assert detect_chain(address) == "bsc"
    assert is_bsc_address(address)


@pytest.mark.parametrize(
    "address",
    [SOL_ADDRESS, "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", "1" * 32, "z" * 44],
)
def test_base58_addresses_are_solana(address):
    assert detect_chain(address) == "solana"
    assert is_solana_address(address)


@pytest.mark.parametrize(
    "address",
    ["", "hello", "0x", "1" * 31, "1" * 45, "0OIl" * 10, None, 42, ["0xabc"]],
)
def test_unrecognized_input_defaults_to_solana_without_raising(address):
    assert detect_chain(address) == "solana"


def test_strict_detection_reports_unknown():
    assert detect_chain("not-an-address", strict=True) is None
    assert detect_chain(BSC_ADDRESS, strict=True) == "bsc"
    assert detect_chain(SOL_ADDRESS, strict=True) == "solana"


def test_detection_is_deterministic():
    results = {detect_chain("weird$$input") for _ in range(5)}
    assert results == {"solana"}


def test_normalize_address_lowercases_only_bsc():
    assert normalize_address("bsc", "  0xABCdef ") == "0xabcdef"
    assert normalize_address("solana", f" {SOL_ADDRESS} ") == SOL_ADDRESS


def test_upper_case_prefix_normalizes_to_lower_hex():
    address = "0X" + "AB" * 20
    assert detect_chain(address, strict=True) == "bsc"
    assert normalize_address("bsc", address) == "0x" + "ab" * 20
