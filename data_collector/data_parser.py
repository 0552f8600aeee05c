from typing import Any, List, Mapping, Optional

from models.errors import MalformedFill
from models.fill import Fill, Side
from utils.logger_utils import setup_logger
from utils.numeric import to_decimal

logger = setup_logger("data_parser")

# 응답이 객체로 감싸져 올 때 배열을 찾는 키
WRAPPED_LIST_KEYS = ("fills", "data", "userFills")

SIDE_CODES = {
    "b": Side.BUY,
    "buy": Side.BUY,
    "bid": Side.BUY,
    "a": Side.SELL,
    "sell": Side.SELL,
    "ask": Side.SELL,
}


class DataParser:
    """Hyperliquid REST 응답을 파싱"""

    @staticmethod
    def parse_fill(raw_data: Mapping[str, Any]) -> Fill:
        """userFills 레코드를 Fill로 변환"""
        if not isinstance(raw_data, Mapping):
            raise MalformedFill(f"Fill record must be an object: {raw_data!r}", raw_data)

        direction_label = raw_data.get("dir")

        try:
            return Fill(
                coin=str(raw_data["coin"]),
                side=_parse_side(raw_data.get("side"), direction_label),
                size=to_decimal(raw_data["sz"]),
                price=to_decimal(raw_data["px"]),
                timestamp=int(raw_data["time"]),
                order_id=_optional_int(raw_data.get("oid")),
                client_order_id=raw_data.get("cloid"),
                trade_id=_optional_int(raw_data.get("tid")),
                direction_label=direction_label,
                closed_pnl=(
                    to_decimal(raw_data["closedPnl"])
                    if raw_data.get("closedPnl") not in (None, "")
                    else None
                )
            )
        except KeyError as e:
            raise MalformedFill(f"Missing field {e} in fill: {raw_data!r}", raw_data) from e
        except (TypeError, ValueError) as e:
            raise MalformedFill(f"Cannot parse fill: {e}", raw_data) from e

    @staticmethod
    def parse_fills(raw_data: Any) -> List[Fill]:
        """배열 또는 배열을 감싼 객체 → Fill 목록 (잘못된 레코드는 건너뜀)"""
        records = _unwrap_list(raw_data)

        fills: List[Fill] = []
        for record in records:
            try:
                fills.append(DataParser.parse_fill(record))
            except MalformedFill as e:
                logger.warning(f"Skipping malformed fill record: {e}")

        logger.debug(f"Parsed {len(fills)}/{len(records)} fill records")
        return fills


def _unwrap_list(raw_data: Any) -> list:
    if isinstance(raw_data, list):
        return raw_data

    if isinstance(raw_data, Mapping):
        for key in WRAPPED_LIST_KEYS:
            if isinstance(raw_data.get(key), list):
                return raw_data[key]

    logger.warning(f"Fills response has no record list: {type(raw_data).__name__}")
    return []


def _parse_side(side: Any, direction_label: Optional[str]) -> Side:
    """side 코드 우선, 없으면 dir 라벨에서 추론"""
    if isinstance(side, str) and side.strip().lower() in SIDE_CODES:
        return SIDE_CODES[side.strip().lower()]

    if direction_label:
        label = direction_label.lower()
        # 롱 진입/숏 청산 = 매수, 숏 진입/롱 청산 = 매도
        if "open long" in label or "close short" in label or label == "buy":
            return Side.BUY
        if "open short" in label or "close long" in label or label == "sell":
            return Side.SELL

    raise ValueError(f"unknown side: {side!r} (dir={direction_label!r})")


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)
