"""
주문 ID 기준 요약 (거래소 closedPnl 사용)

거래소가 체결마다 계산해 주는 closedPnl을 주문(oid)별로 합산합니다.
평균단가 재구성과는 결과가 다를 수 있으며, 별도 데이터 소스로만 사용합니다.
"""

from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List

from config.settings import Settings
from models.fill import Fill
from models.position import Direction, PositionRecord
from utils.logger_utils import setup_logger
from utils.numeric import ZERO, round_places

logger = setup_logger("closed_pnl_adapter")


@dataclass
class _OrderSummary:
    coin: str
    direction: Direction
    open_timestamp: int
    close_timestamp: int
    realized_pnl: Decimal


def summarize_by_order(fills: Iterable[Fill]) -> List[PositionRecord]:
    """oid별 합산 → PositionRecord (처음 등장한 주문 순)"""
    places = Settings.reconstruction.pnl_display_places
    orders: "OrderedDict[int, _OrderSummary]" = OrderedDict()
    skipped = 0

    for fill in fills:
        if fill.order_id is None:
            skipped += 1
            continue

        pnl = fill.closed_pnl if fill.closed_pnl is not None else ZERO
        summary = orders.get(fill.order_id)

        if summary is None:
            orders[fill.order_id] = _OrderSummary(
                coin=fill.coin,
                direction=_direction_from_label(fill.direction_label),
                open_timestamp=fill.timestamp,
                close_timestamp=fill.timestamp,
                realized_pnl=pnl
            )
        else:
            summary.open_timestamp = min(summary.open_timestamp, fill.timestamp)
            summary.close_timestamp = max(summary.close_timestamp, fill.timestamp)
            summary.realized_pnl += pnl

    if skipped:
        logger.warning(f"Skipped {skipped} fills without order id")

    return [
        PositionRecord(
            coin=s.coin,
            direction=s.direction,
            open_timestamp=s.open_timestamp,
            close_timestamp=s.close_timestamp,
            duration_ms=s.close_timestamp - s.open_timestamp,
            realized_pnl_usd=round_places(s.realized_pnl, places)
        )
        for s in orders.values()
    ]


def _direction_from_label(label) -> Direction:
    # "Open Long", "Close Long" → long, 나머지 short
    return Direction.LONG if label and "Long" in label else Direction.SHORT
