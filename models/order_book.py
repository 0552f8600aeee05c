from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple


@dataclass(frozen=True)
class PriceLevel:
    price: Decimal
    size: Decimal
    order_count: Optional[int] = None  # n: 스냅샷에서만 제공


# 최우선 호가부터 (피드 순서 그대로, 재정렬 없음)
BookSide = Tuple[PriceLevel, ...]


@dataclass(frozen=True)
class OrderBookState:
    coin: Optional[str]          # coin: 없으면 구독 중인 코인으로 간주
    bids: BookSide
    asks: BookSide
    timestamp: Optional[int] = None  # time (ms)


@dataclass(frozen=True)
class DepthRow:
    price: Decimal
    size: Decimal
    cumulative_size: Decimal     # 최우선 호가부터 이 가격까지의 누적 수량
