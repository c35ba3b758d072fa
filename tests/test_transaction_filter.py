"""Unit tests for incoming-payment selection."""

from decimal import Decimal

from conftest import MONITORED, USDC, transfer
from payx.services.chain.filter import filter_incoming_transfers
from payx.services.chain.models import TokenTransfer


def _filter(rows, **kwargs):
    transfers = [TokenTransfer.model_validate(r) for r in rows]
    return filter_incoming_transfers(transfers, receiving_address=MONITORED, asset_address=USDC, **kwargs)


def test_keeps_incoming_usdc_payment():
    kept = _filter([transfer("0xA", "0xUser1", "5000000")])

    assert [t.hash for t in kept] == ["0xA"]
    assert kept[0].from_address == "0xUser1"


def test_empty_input_gives_empty_output():
    assert _filter([]) == []


def test_address_comparison_ignores_case():
    kept = _filter([transfer("0xA", "0xUser1", "5000000", to=MONITORED.upper(), contract=USDC.lower())])

    assert len(kept) == 1


def test_self_transfer_is_excluded_regardless_of_amount():
    assert _filter([transfer("0xS", MONITORED.lower(), "999000000000")]) == []


def test_other_asset_and_other_recipient_are_excluded():
    rows = [
        transfer("0xB", "0xUser1", "5000000", contract="0xOtherToken"),
        transfer("0xC", "0xUser1", "5000000", to="0xSomeoneElse"),
    ]

    assert _filter(rows) == []


def test_minimum_threshold_is_inclusive():
    rows = [
        transfer("0xAt", "0xUser1", "10000"),
        transfer("0xBelow", "0xUser1", "9999"),
    ]

    assert [t.hash for t in _filter(rows)] == ["0xAt"]


def test_custom_threshold():
    rows = [transfer("0xA", "0xUser1", "5000000"), transfer("0xB", "0xUser2", "20000000")]

    assert [t.hash for t in _filter(rows, min_amount=Decimal(10))] == ["0xB"]


def test_malformed_value_is_treated_as_non_matching():
    rows = [
        transfer("0xBad", "0xUser1", "not-a-number"),
        transfer("0xNaN", "0xUser1", "NaN"),
        transfer("0xGood", "0xUser2", "1000000"),
    ]

    assert [t.hash for t in _filter(rows)] == ["0xGood"]


def test_output_preserves_input_order_and_is_subset():
    rows = [
        transfer("0x3", "0xUser3", "3000000", time_stamp="1700000300"),
        transfer("0xOut", MONITORED, "3000000", to="0xUser9"),
        transfer("0x2", "0xUser2", "2000000", time_stamp="1700000200"),
        transfer("0x1", "0xUser1", "1000000", time_stamp="1700000100"),
    ]

    kept = _filter(rows)

    assert [t.hash for t in kept] == ["0x3", "0x2", "0x1"]
    assert {t.hash for t in kept} <= {r["hash"] for r in rows}
