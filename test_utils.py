# test_utils.py
import pytest

from main import DEFAULT_PAIRS, USDC, USDT, WETH, parse_pairs
from utils import (
    address_sort_key,
    canonical_address,
    format_timestamp,
    is_valid_evm_address,
    order_pair,
    truncate_address,
)


def test_canonical_address_applies_checksum():
    assert canonical_address(WETH.lower()) == WETH


def test_canonical_address_rejects_garbage():
    with pytest.raises(ValueError):
        canonical_address("0xzz")


def test_order_pair_is_numeric_and_symmetric():
    low = "0x" + "0" * 39 + "1"
    high = "0x" + "f" * 40
    assert order_pair(high, low) == order_pair(low, high)
    assert order_pair(high, low)[0] == canonical_address(low)
    assert address_sort_key(low) == 1


def test_order_pair_weth_usdc():
    # USDC (0xA0b8...) < WETH (0xC02a...)
    assert order_pair(WETH, USDC) == (USDC, WETH)


def test_is_valid_evm_address():
    assert is_valid_evm_address(WETH)
    assert is_valid_evm_address(WETH.lower())
    assert not is_valid_evm_address("")
    assert not is_valid_evm_address(None)
    assert not is_valid_evm_address("So11111111111111111111111111111111111111112")


def test_truncate_address():
    assert truncate_address(WETH) == "0xC02aaA...6Cc2"
    assert truncate_address("0x1234") == "0x1234"


def test_format_timestamp_is_utc():
    assert format_timestamp(0) == "1970-01-01 00:00:00"


# ============================================================================
# main.parse_pairs
# ============================================================================

def test_parse_pairs_from_argv():
    assert parse_pairs([WETH, USDC, USDT, WETH], "") == [(WETH, USDC), (USDT, WETH)]


def test_parse_pairs_odd_argv_exits():
    with pytest.raises(SystemExit):
        parse_pairs([WETH], "")


def test_parse_pairs_invalid_argv_address_exits():
    with pytest.raises(SystemExit, match="0xnothex"):
        parse_pairs([WETH, "0xnothex"], "")


def test_parse_pairs_from_env_skips_malformed_entries():
    watch = f" {WETH}:{USDC} , bad, :{USDT}, {WETH}:0x1234, {USDT}:{USDC} "
    assert parse_pairs([], watch) == [(WETH, USDC), (USDT, USDC)]


def test_parse_pairs_defaults():
    assert parse_pairs([], "") == DEFAULT_PAIRS


def test_parse_pairs_all_invalid_falls_back_to_defaults():
    assert parse_pairs([], "0xa:0xb") == DEFAULT_PAIRS
