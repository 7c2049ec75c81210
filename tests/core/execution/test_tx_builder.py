"""
Tests for call-data encoding, transaction ids and unit conversion.
"""

import re

import pytest

from walletcore.core.execution import (
    ERC20_ALLOWANCE_SELECTOR,
    ERC20_APPROVE_SELECTOR,
    ERC20_TRANSFER_SELECTOR,
    MAX_UINT256,
    TransactionBuilder,
    is_valid_address,
)
from walletcore.core.units import format_ether, from_base_units, parse_ether, to_base_units


RECIPIENT = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
SPENDER = "0xDef1C0ded9bec7F1a1670819833240f027b25EfF"


# =============================================================================
# ERC20 Encoding Tests
# =============================================================================

class TestTokenTransferEncoding:
    """Tests for transfer(address,uint256) call data."""

    def test_known_vector(self):
        """1 USDC (6 decimals) to a checksummed address."""
        data = TransactionBuilder.encode_token_transfer(RECIPIENT, 1_000_000)

        assert data == (
            "0xa9059cbb"
            "000000000000000000000000742d35cc6634c0532925a3b844bc454e4438f44e"
            "00000000000000000000000000000000000000000000000000000000000f4240"
        )

    @pytest.mark.parametrize("amount", [0, 1, 10**18, MAX_UINT256])
    def test_always_138_chars(self, amount):
        data = TransactionBuilder.encode_token_transfer(RECIPIENT, amount)

        assert len(data) == 138
        assert data.startswith(ERC20_TRANSFER_SELECTOR)
        assert re.fullmatch(r"0x[0-9a-f]{136}", data)

    def test_rejects_out_of_range_amount(self):
        with pytest.raises(ValueError):
            TransactionBuilder.encode_token_transfer(RECIPIENT, MAX_UINT256 + 1)
        with pytest.raises(ValueError):
            TransactionBuilder.encode_token_transfer(RECIPIENT, -1)

    def test_rejects_bad_address(self):
        with pytest.raises(ValueError):
            TransactionBuilder.encode_token_transfer("0x1234", 1)

    def test_build_request(self):
        """Display amounts are scaled by the token's decimals."""
        request = TransactionBuilder.build_token_transfer_request(
            from_address="0x1111111111111111111111111111111111111111",
            to_address=RECIPIENT,
            token_address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            amount="12.5",
            decimals=6,
        )

        assert request["to"] == "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
        assert request["value"] == 0
        assert request["data"].endswith(format(12_500_000, "064x"))


class TestApprovalEncoding:
    """Tests for approve() and allowance() call data."""

    def test_unlimited_approve(self):
        data = TransactionBuilder.encode_approve(SPENDER)

        assert data.startswith(ERC20_APPROVE_SELECTOR)
        assert data[10:74] == SPENDER[2:].lower().zfill(64)
        assert data[74:] == "f" * 64

    def test_allowance(self):
        owner = "0x1111111111111111111111111111111111111111"
        data = TransactionBuilder.encode_allowance(owner, SPENDER)

        assert data.startswith(ERC20_ALLOWANCE_SELECTOR)
        assert len(data) == 138
        assert data.endswith(SPENDER[2:].lower())


# =============================================================================
# Transaction Id Tests
# =============================================================================

class TestTransactionIds:
    """Tests for generate_tx_id()."""

    def test_format(self):
        assert re.fullmatch(r"tx_\d+_[0-9a-z]{9}", TransactionBuilder.generate_tx_id())

    def test_time_component_strictly_increases(self):
        ids = [TransactionBuilder.generate_tx_id() for _ in range(200)]
        millis = [int(tx_id.split("_")[1]) for tx_id in ids]

        assert millis == sorted(millis)
        assert len(set(millis)) == len(millis)


# =============================================================================
# Address Validation Tests
# =============================================================================

@pytest.mark.parametrize(
    "address, valid",
    [
        (RECIPIENT, True),
        (RECIPIENT.lower(), True),
        ("0x123", False),
        ("742d35Cc6634C0532925a3b844Bc454e4438f44e", False),
        ("0xZZ2d35Cc6634C0532925a3b844Bc454e4438f44e", False),
        (RECIPIENT + "\n", False),
        (None, False),
    ],
)
def test_is_valid_address(address, valid):
    assert is_valid_address(address) is valid


# =============================================================================
# Unit Conversion Tests
# =============================================================================

class TestUnits:
    """Tests for fixed-point conversions."""

    def test_parse_and_format_ether(self):
        assert parse_ether("1.5") == 1_500_000_000_000_000_000
        assert format_ether(1_500_000_000_000_000_000) == "1.5"
        assert format_ether(0) == "0"

    def test_no_float_drift(self):
        """0.1 + 0.2 style drift never reaches base units."""
        assert to_base_units("0.3", 18) == 300_000_000_000_000_000
        assert to_base_units("0.1", 6) + to_base_units("0.2", 6) == to_base_units("0.3", 6)

    def test_truncates_extra_precision(self):
        assert to_base_units("1.1234567", 6) == 1_123_456

    def test_large_values_keep_precision(self):
        assert from_base_units(MAX_UINT256, 0) == str(MAX_UINT256)
        assert to_base_units(str(MAX_UINT256), 0) == MAX_UINT256

    @pytest.mark.parametrize("amount", ["abc", "", "-1", "NaN", "Infinity", None])
    def test_rejects_invalid(self, amount):
        with pytest.raises(ValueError):
            to_base_units(amount, 18)

    @pytest.mark.parametrize("amount, decimals", [("1e200", 18), (str(MAX_UINT256 + 1), 0)])
    def test_rejects_amounts_beyond_uint256(self, amount, decimals):
        with pytest.raises(ValueError, match="out of range"):
            to_base_units(amount, decimals)

    def test_small_amounts_render_without_exponent(self):
        assert from_base_units(1, 18) == "0.000000000000000001"
