from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class Side(Enum):
    """체결 방향"""
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class Fill:
    coin: str                    # coin: "ETH"
    side: Side                   # side: "B" 매수 | "A" 매도
    size: Decimal                # sz
    price: Decimal               # px
    timestamp: int               # time (ms)
    order_id: Optional[int] = None          # oid
    client_order_id: Optional[str] = None   # cloid
    trade_id: Optional[int] = None          # tid: 중복 체크용
    direction_label: Optional[str] = None   # dir: "Open Long", "Close Short" ...
    closed_pnl: Optional[Decimal] = None    # closedPnl: 거래소 계산 실현손익

    @property
    def signed_size(self) -> Decimal:
        """매수 +, 매도 -"""
        return self.size if self.side is Side.BUY else -self.size
