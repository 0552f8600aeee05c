from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Union


class Direction(Enum):
    """포지션 방향"""
    LONG = "long"
    SHORT = "short"

    @classmethod
    def from_sign(cls, value: Decimal) -> "Direction":
        return cls.LONG if value > 0 else cls.SHORT


@dataclass(frozen=True)
class Flat:
    """포지션 없음"""


@dataclass(frozen=True)
class OpenPosition:
    """보유 중인 포지션 (재구성 내부 상태)"""
    direction: Direction
    signed_size: Decimal         # 롱 +, 숏 -
    avg_entry_price: Decimal
    open_timestamp: int
    realized_pnl: Decimal        # 부분 청산으로 누적된 실현손익
    entry_cost: Decimal          # 남은 수량의 진입 원가 합 (Σ price × size, 반올림 없음)


PositionState = Union[Flat, OpenPosition]

FLAT = Flat()


@dataclass(frozen=True)
class PositionRecord:
    """완료된 왕복 거래 (진입 → 전량 청산)"""
    coin: str
    direction: Direction
    open_timestamp: int
    close_timestamp: int
    duration_ms: int
    realized_pnl_usd: Decimal
