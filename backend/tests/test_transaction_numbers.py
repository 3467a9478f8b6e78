# Overview: Pytest coverage for period-scoped transaction numbering.

import pytest

from pastil.services import transaction_number_service as numbers


class TestFormatting:

    def test_format_pads_sequence(self):
        assert numbers.format_transaction_number("24-05", 12) == "24-05-00012"
        assert numbers.format_transaction_number("24-05", 12, pad=3) == "24-05-012"

    @pytest.mark.parametrize("period", ["2024-05", "24-5", "24/05", "", None])
    def test_invalid_period(self, period):
        with pytest.raises(ValueError):
            numbers.validate_period(period)

    @pytest.mark.parametrize("number,expected", [
        ("24-05-00012", 12),
        ("24-05-99999", 99999),
        (None, 0),
        ("", 0),
        ("garbage", 0),
        ("24-05-xx", 0),
    ])
    def test_parse_sequence(self, number, expected):
        assert numbers.parse_sequence(number) == expected


class TestNextNumber:

    def test_first_number_of_period(self, db_session):
        assert numbers.next_transaction_number("24-05") == "24-05-00001"

    def test_preview_does_not_reserve(self, db_session):
        first = numbers.next_transaction_number("24-05")
        second = numbers.next_transaction_number("24-05")
        assert first == second == "24-05-00001"

    def test_increments_past_highest_written(self, db_session, make_sale):
        make_sale("24-05-00007", transaction_id="a")
        make_sale("24-05-00041", transaction_id="b")
        make_sale("24-05-00009", transaction_id="c")
        assert numbers.next_transaction_number("24-05") == "24-05-00042"

    def test_each_period_restarts(self, db_session, make_sale):
        make_sale("24-05-00041")
        assert numbers.next_transaction_number("24-06") == "24-06-00001"
        assert numbers.latest_transaction_number("24-04") is None

    def test_cancelled_rows_still_hold_their_number(self, db_session, make_sale):
        make_sale("24-05-00003", cancelled=True)
        assert numbers.next_transaction_number("24-05") == "24-05-00004"

    def test_pad_from_config(self, app, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "TRANSACTION_NUMBER_PAD", 3)
        assert numbers.next_transaction_number("24-05") == "24-05-001"

    def test_defaults_to_current_period(self, db_session, monkeypatch):
        monkeypatch.setattr(numbers, "current_period", lambda: "31-12")
        assert numbers.next_transaction_number() == "31-12-00001"

    def test_rejects_bad_period(self, db_session):
        with pytest.raises(ValueError):
            numbers.next_transaction_number("May 2024")

    def test_mixed_pad_widths_compare_numerically(self, db_session, make_sale):
        make_sale("24-05-00012", transaction_id="a")
        make_sale("24-05-999", transaction_id="b")
        assert numbers.latest_transaction_number("24-05") == "24-05-999"
        assert numbers.next_transaction_number("24-05") == "24-05-01000"

    def test_sequence_past_pad_width(self, db_session, make_sale):
        make_sale("24-05-99999", transaction_id="a")
        make_sale("24-05-100000", transaction_id="b")
        assert numbers.next_transaction_number("24-05") == "24-05-100001"
