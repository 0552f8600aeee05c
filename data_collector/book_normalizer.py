"""
호가창 정규화 및 누적 수량(depth) 계산

REST 스냅샷과 WebSocket 메시지를 하나의 OrderBookState로 변환합니다.
피드가 매번 전체 호가를 보내므로 이전 상태와 병합하지 않습니다.
"""

from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence

from config.settings import Settings
from models.errors import MalformedPayload, UnrecognizedMessage
from models.order_book import BookSide, DepthRow, OrderBookState, PriceLevel
from utils.logger_utils import setup_logger
from utils.numeric import ONE, ZERO, to_decimal

logger = setup_logger("book_normalizer")


def normalize(payload: Any, strict: bool = False) -> Optional[OrderBookState]:
    """
    호가 페이로드 정규화

    - levels 필드: 스냅샷 형태 ([bidLevels, askLevels], px/sz 문자열)
    - bids + asks 필드: 증분 형태 ([price, size] 숫자 쌍)
    - 둘 다 아니면 None (업데이트 없음, 에러 아님)

    Args:
        strict: True면 None 대신 UnrecognizedMessage 발생 (REST 스냅샷용)

    Raises:
        MalformedPayload: 숫자 필드 파싱 실패
        UnrecognizedMessage: strict 모드에서 형태 불일치
    """
    if not isinstance(payload, Mapping):
        return _unrecognized(f"payload type: {type(payload).__name__}", strict)

    if payload.get("levels") is not None:
        bids, asks = _parse_snapshot_levels(payload["levels"])
    elif payload.get("bids") is not None and payload.get("asks") is not None:
        bids = _parse_pairs(payload["bids"], "bids")
        asks = _parse_pairs(payload["asks"], "asks")
    else:
        return _unrecognized(f"keys={sorted(payload.keys())}", strict)

    return OrderBookState(
        coin=payload.get("coin"),
        bids=bids,
        asks=asks,
        timestamp=_parse_timestamp(payload.get("time"))
    )


def normalize_message(message: Any) -> Optional[OrderBookState]:
    """
    WebSocket 메시지 정규화

    channel == "l2Book" 메시지의 data만 처리하고 나머지 채널은 무시합니다.
    """
    if not isinstance(message, Mapping):
        return None

    channel = message.get("channel")
    if channel is None:
        # 봉투 없이 bids/asks를 직접 담은 메시지
        return normalize(message)

    if channel != Settings.hyperliquid.book_channel:
        logger.debug(f"Ignoring channel: {channel}")
        return None

    state = normalize(message.get("data"))
    if state is None:
        # data 없이 메시지 최상위에 bids/asks가 온 경우
        state = normalize(message)
    return state


def compute_depth(side: BookSide) -> List[DepthRow]:
    """피드 순서대로 누적 수량 계산 (재정렬하지 않음)"""
    rows: List[DepthRow] = []
    cumulative = ZERO
    for level in side:
        cumulative += level.size
        rows.append(DepthRow(price=level.price, size=level.size, cumulative_size=cumulative))
    return rows


def max_size(side: BookSide) -> Decimal:
    """최대 호가 수량 (최소 1, 상대 막대 길이 계산용)"""
    largest = max((level.size for level in side), default=ZERO)
    return largest if largest > 0 else ONE


def window(side: BookSide, size: Optional[int] = None) -> BookSide:
    """최우선 호가부터 size개"""
    if size is None:
        size = Settings.book.window_size
    return side[:size]


def best_bid(state: OrderBookState) -> Optional[Decimal]:
    return state.bids[0].price if state.bids else None


def best_ask(state: OrderBookState) -> Optional[Decimal]:
    return state.asks[0].price if state.asks else None


def mid_price(state: OrderBookState) -> Optional[Decimal]:
    """중간 가격. 한쪽만 있으면 그쪽 최우선 호가"""
    bid, ask = best_bid(state), best_ask(state)
    if bid is not None and ask is not None:
        return (bid + ask) / 2
    return bid if bid is not None else ask


def _parse_snapshot_levels(levels: Any) -> tuple:
    """[bidLevels, askLevels] → (bids, asks)"""
    if not isinstance(levels, Sequence) or isinstance(levels, str) or len(levels) != 2:
        raise MalformedPayload("levels must be [bidLevels, askLevels]", "levels", levels)

    bid_raw, ask_raw = levels
    return (
        _parse_level_objects(bid_raw, "bids"),
        _parse_level_objects(ask_raw, "asks")
    )


def _parse_level_objects(raw_levels: Any, side_name: str) -> BookSide:
    """[{px, sz, n}, ...] → BookSide"""
    if not isinstance(raw_levels, Sequence) or isinstance(raw_levels, str):
        raise MalformedPayload(f"{side_name} levels must be a list", side_name, raw_levels)

    parsed = []
    for raw in raw_levels:
        if not isinstance(raw, Mapping):
            raise MalformedPayload(f"{side_name} level must be an object", side_name, raw)

        price = _parse_number(raw.get("px"), f"{side_name}.px")
        size = _parse_size(raw.get("sz"), f"{side_name}.sz")
        count = raw.get("n")

        # 수량 0 = 호가 삭제
        if size == 0:
            continue

        parsed.append(PriceLevel(
            price=price,
            size=size,
            order_count=count if isinstance(count, int) and not isinstance(count, bool) else None
        ))

    return tuple(parsed)


def _parse_pairs(raw_pairs: Any, side_name: str) -> BookSide:
    """[[price, size], ...] → BookSide"""
    if not isinstance(raw_pairs, Sequence) or isinstance(raw_pairs, str):
        raise MalformedPayload(f"{side_name} must be a list", side_name, raw_pairs)

    parsed = []
    for pair in raw_pairs:
        if not isinstance(pair, Sequence) or isinstance(pair, str) or len(pair) < 2:
            raise MalformedPayload(f"{side_name} entry must be [price, size]", side_name, pair)

        price = _parse_number(pair[0], f"{side_name}.price")
        size = _parse_size(pair[1], f"{side_name}.size")
        if size == 0:
            continue

        parsed.append(PriceLevel(price=price, size=size))

    return tuple(parsed)


def _parse_number(value: Any, field_name: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as e:
        raise MalformedPayload(f"Cannot parse {field_name}: {e}", field_name, value) from e


def _parse_size(value: Any, field_name: str) -> Decimal:
    size = _parse_number(value, field_name)
    if size < 0:
        raise MalformedPayload(f"Negative {field_name}: {size}", field_name, value)
    return size


def _parse_timestamp(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _unrecognized(detail: str, strict: bool) -> None:
    if strict:
        raise UnrecognizedMessage(f"Unrecognized book message: {detail}")
    logger.debug(f"Unrecognized book message: {detail}")
    return None
