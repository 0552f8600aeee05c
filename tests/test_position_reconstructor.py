"""Tests for average-cost position reconstruction."""

from decimal import Decimal

from core.position_reconstructor import (
    FlipPolicy,
    apply_fill,
    reconstruct,
    reconstruct_with_report,
)
from models.position import FLAT, Direction, OpenPosition, PositionRecord


class TestApplyFill:
    def test_opens_long_from_flat(self, make_fill):
        state, record = apply_fill(FLAT, make_fill("buy", 2, 100, 7))
        assert record is None
        assert state == OpenPosition(
            direction=Direction.LONG,
            signed_size=Decimal(2),
            avg_entry_price=Decimal(100),
            open_timestamp=7,
            realized_pnl=Decimal(0),
            entry_cost=Decimal(200),
        )

    def test_opens_short_from_flat(self, make_fill):
        state, _ = apply_fill(FLAT, make_fill("sell", 1, 50, 0))
        assert state.direction is Direction.SHORT
        assert state.signed_size == Decimal(-1)

    def test_adding_updates_weighted_average(self, make_fill):
        state, _ = apply_fill(FLAT, make_fill("buy", 1, 100, 0))
        state, record = apply_fill(state, make_fill("buy", 1, 120, 5))
        assert record is None
        assert state.avg_entry_price == Decimal(110)
        assert state.signed_size == Decimal(2)
        assert state.open_timestamp == 0

    def test_partial_reduce_accumulates_pnl(self, make_fill):
        state, _ = apply_fill(FLAT, make_fill("buy", 3, 100, 0))
        state, record = apply_fill(state, make_fill("sell", 1, 110, 5))
        assert record is None
        assert state.signed_size == Decimal(2)
        assert state.avg_entry_price == Decimal(100)
        assert state.realized_pnl == Decimal(10)

    def test_short_profit_when_price_falls(self, make_fill):
        state, _ = apply_fill(FLAT, make_fill("sell", 2, 100, 0))
        state, record = apply_fill(state, make_fill("buy", 2, 90, 30))
        assert state == FLAT
        assert record.direction is Direction.SHORT
        assert record.realized_pnl_usd == Decimal(20)

    def test_flip_split_opens_remainder(self, make_fill):
        state, _ = apply_fill(FLAT, make_fill("buy", 1, 100, 0))
        state, record = apply_fill(state, make_fill("sell", 3, 105, 10), FlipPolicy.SPLIT)
        assert record.direction is Direction.LONG
        assert record.realized_pnl_usd == Decimal(5)
        assert state == OpenPosition(
            direction=Direction.SHORT,
            signed_size=Decimal(-2),
            avg_entry_price=Decimal(105),
            open_timestamp=10,
            realized_pnl=Decimal(0),
            entry_cost=Decimal(210),
        )

    def test_flip_truncate_discards_remainder(self, make_fill):
        state, _ = apply_fill(FLAT, make_fill("buy", 1, 100, 0))
        state, record = apply_fill(state, make_fill("sell", 3, 105, 10), FlipPolicy.TRUNCATE)
        assert record.realized_pnl_usd == Decimal(5)
        assert state == FLAT


class TestReconstruct:
    def test_round_trip(self, make_fill):
        records = reconstruct([
            make_fill("buy", 1, 100, 0),
            make_fill("sell", 1, 110, 10),
        ])
        assert records == [PositionRecord(
            coin="ETH",
            direction=Direction.LONG,
            open_timestamp=0,
            close_timestamp=10,
            duration_ms=10,
            realized_pnl_usd=Decimal(10),
        )]

    def test_averaging(self, make_fill):
        records = reconstruct([
            make_fill("buy", 1, 100, 0),
            make_fill("buy", 1, 120, 5),
            make_fill("sell", 2, 130, 10),
        ])
        assert len(records) == 1
        assert records[0].realized_pnl_usd == Decimal(40)

    def test_unsorted_input_is_sorted_by_timestamp(self, make_fill):
        records = reconstruct([
            make_fill("sell", 1, 110, 10),
            make_fill("buy", 1, 100, 0),
        ])
        assert len(records) == 1
        assert records[0].direction is Direction.LONG
        assert records[0].realized_pnl_usd == Decimal(10)

    def test_equal_timestamps_keep_delivery_order(self, make_fill):
        records = reconstruct([
            make_fill("buy", 1, 100, 5),
            make_fill("sell", 1, 90, 5),
        ])
        assert records[0].direction is Direction.LONG
        assert records[0].realized_pnl_usd == Decimal(-10)
        assert records[0].duration_ms == 0

    def test_open_position_dropped(self, make_fill):
        records = reconstruct([
            make_fill("buy", 1, 100, 0),
            make_fill("sell", 1, 110, 10),
            make_fill("buy", 2, 105, 20),
        ])
        assert len(records) == 1
        assert records[0].close_timestamp == 10

    def test_only_open_position_yields_nothing(self, make_fill):
        assert reconstruct([make_fill("sell", 1, 100, 0)]) == []

    def test_output_most_recent_close_first(self, make_fill):
        records = reconstruct([
            make_fill("buy", 1, 100, 0),
            make_fill("sell", 1, 101, 5),
            make_fill("sell", 1, 100, 10),
            make_fill("buy", 1, 99, 20),
        ])
        assert [r.close_timestamp for r in records] == [20, 5]

    def test_coins_are_independent(self, make_fill):
        records = reconstruct([
            make_fill("buy", 1, 100, 0, coin="ETH"),
            make_fill("sell", 1, 50000, 1, coin="BTC"),
            make_fill("sell", 1, 100, 2, coin="ETH"),
            make_fill("buy", 1, 49000, 3, coin="BTC"),
        ])
        by_coin = {r.coin: r for r in records}
        assert by_coin["ETH"].realized_pnl_usd == Decimal(0)
        assert by_coin["BTC"].direction is Direction.SHORT
        assert by_coin["BTC"].realized_pnl_usd == Decimal(1000)
        assert [r.coin for r in records] == ["BTC", "ETH"]

    def test_fractional_sizes_close_exactly(self, make_fill):
        records = reconstruct([
            make_fill("buy", "0.1", 100, 0),
            make_fill("buy", "0.2", 100, 1),
            make_fill("sell", "0.3", 101, 2),
        ])
        assert len(records) == 1
        assert records[0].realized_pnl_usd == Decimal("0.3")

    def test_uneven_average_round_trip_is_exact(self, make_fill):
        # average entry 302/3 is not representable; round-trip P&L still exactly 1
        records = reconstruct([
            make_fill("buy", 1, 100, 0),
            make_fill("buy", 2, 101, 1),
            make_fill("sell", 3, 101, 2),
        ])
        assert records[0].realized_pnl_usd == Decimal(1)

    def test_partial_exits_after_uneven_average_sum_exactly(self, make_fill):
        records = reconstruct([
            make_fill("buy", 1, 100, 0),
            make_fill("buy", 2, 101, 1),
            make_fill("sell", 1, 102, 2),
            make_fill("sell", 2, 99, 3),
        ])
        # (102 + 2*99) - (100 + 2*101) = -2
        assert records[0].realized_pnl_usd == Decimal(-2)

    def test_flip_split_reports_second_round_trip(self, make_fill):
        records = reconstruct([
            make_fill("buy", 1, 100, 0),
            make_fill("sell", 2, 110, 10),
            make_fill("buy", 1, 100, 20),
        ], flip_policy="split")
        assert [(r.direction, r.realized_pnl_usd) for r in records] == [
            (Direction.SHORT, Decimal(10)),
            (Direction.LONG, Decimal(10)),
        ]

    def test_flip_truncate_via_string(self, make_fill):
        records = reconstruct([
            make_fill("buy", 1, 100, 0),
            make_fill("sell", 2, 110, 10),
            make_fill("buy", 1, 100, 20),
        ], flip_policy="truncate")
        assert len(records) == 1
        assert records[0].close_timestamp == 10


class TestMalformedFills:
    def test_zero_size_fill_excluded(self, make_fill):
        result = reconstruct_with_report([
            make_fill("buy", 1, 100, 0),
            make_fill("buy", 0, 500, 1),
            make_fill("sell", 1, 110, 2),
        ])
        assert len(result.rejected) == 1
        assert result.records[0].realized_pnl_usd == Decimal(10)

    def test_non_positive_price_does_not_touch_state(self, make_fill):
        result = reconstruct_with_report([
            make_fill("buy", 1, 100, 0),
            make_fill("buy", 1, 0, 1),
            make_fill("buy", 1, -5, 2),
        ])
        assert len(result.rejected) == 2
        assert result.records == []
        position = result.open_positions["ETH"]
        assert position.signed_size == Decimal(1)
        assert position.avg_entry_price == Decimal(100)

    def test_negative_size_rejected(self, make_fill):
        result = reconstruct_with_report([make_fill("sell", -1, 100, 0)])
        assert result.rejected[0].fill.size == Decimal(-1)
        assert result.open_positions == {}

    def test_rejection_does_not_abort_batch(self, make_fill):
        records = reconstruct([
            make_fill("buy", 0, 100, 0),
            make_fill("buy", 1, 100, 1),
            make_fill("sell", 1, 100, 2),
        ])
        assert len(records) == 1


class TestIdempotence:
    def test_removing_no_op_entries_gives_same_records(self, make_fill):
        clean = [
            make_fill("buy", 1, 100, 0, trade_id=1),
            make_fill("buy", 1, 120, 5, trade_id=2),
            make_fill("sell", 2, 130, 10, trade_id=3),
        ]
        noisy = [
            clean[0],
            make_fill("buy", 0, 100, 1),
            clean[1],
            clean[1],
            clean[2],
            make_fill("sell", 1, 0, 11),
        ]
        assert reconstruct(noisy) == reconstruct(clean)

    def test_duplicate_trade_id_reported(self, make_fill):
        fill = make_fill("buy", 1, 100, 0, trade_id=42)
        result = reconstruct_with_report([fill, fill])
        assert len(result.rejected) == 1
        assert "duplicate" in result.rejected[0].reason

    def test_duplicates_counted_when_check_disabled(self, make_fill):
        fill = make_fill("buy", 1, 100, 0, trade_id=42)
        result = reconstruct_with_report([fill, fill], check_duplicates=False)
        assert result.rejected == []
        assert result.open_positions["ETH"].signed_size == Decimal(2)

    def test_calls_do_not_share_state(self, make_fill):
        fills = [
            make_fill("buy", 1, 100, 0, trade_id=1),
            make_fill("sell", 1, 110, 10, trade_id=2),
        ]
        assert reconstruct(fills) == reconstruct(fills)
