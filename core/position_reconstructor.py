"""
체결 내역 → 완료 포지션 재구성

평균단가(average-cost) 방식의 부호 포지션 누적:
    Flat → OpenPosition → ... → Flat (레코드 1건 생성)

코인별로 체결을 시간순 정렬한 뒤 apply_fill을 왼쪽 접기(left fold)로 적용합니다.
각 상태는 불변 값이며 호출 간에 남는 상태는 없습니다.
"""

from collections import OrderedDict
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from config.settings import Settings
from data_collector.data_validator import FillValidator
from models.errors import MalformedFill
from models.fill import Fill
from models.position import (
    FLAT,
    Direction,
    Flat,
    OpenPosition,
    PositionRecord,
    PositionState,
)
from utils.logger_utils import setup_logger
from utils.numeric import ZERO, sign

logger = setup_logger("position_reconstructor")


class FlipPolicy(Enum):
    """0을 지나 반대 방향으로 넘어가는 체결 처리"""
    SPLIT = "split"          # 청산분 + 신규 진입분으로 분할 (같은 타임스탬프)
    TRUNCATE = "truncate"    # 0까지만 청산, 나머지 버림


@dataclass(frozen=True)
class RejectedFill:
    fill: Fill
    reason: str


@dataclass
class ReconstructionResult:
    """재구성 결과"""
    records: List[PositionRecord] = field(default_factory=list)
    rejected: List[RejectedFill] = field(default_factory=list)
    open_positions: Dict[str, OpenPosition] = field(default_factory=dict)


def apply_fill(
    state: PositionState,
    fill: Fill,
    flip_policy: FlipPolicy = FlipPolicy.SPLIT
) -> Tuple[PositionState, Optional[PositionRecord]]:
    """
    체결 1건 적용

    Args:
        state: 해당 코인의 현재 포지션 상태
        fill: 검증된 체결 (size > 0, price > 0)
        flip_policy: 반전 체결 처리 방식

    Returns:
        (새 상태, 포지션이 0이 되었으면 완료 레코드)
    """
    fill_signed = fill.signed_size

    # 1. 신규 진입
    if isinstance(state, Flat):
        return _open(fill, fill_signed), None

    held = abs(state.signed_size)

    # 2. 같은 방향 추가 진입: 가중 평균단가
    if sign(fill_signed) == sign(state.signed_size):
        new_size = state.signed_size + fill_signed
        entry_cost = state.entry_cost + fill.price * fill.size
        return replace(
            state,
            signed_size=new_size,
            avg_entry_price=entry_cost / abs(new_size),
            entry_cost=entry_cost
        ), None

    # 3. 반대 방향: 축소 / 청산 / 반전
    # 실현손익 = (청산가 - 평균단가) × 부호 × 청산수량
    # 전량 청산은 남은 원가 전체를 빼서 왕복 손익이 정확히 맞도록 함
    position_sign = sign(state.signed_size)

    if fill.size < held:
        released_cost = state.entry_cost * fill.size / held
        pnl = (fill.price * fill.size - released_cost) * position_sign
        entry_cost = state.entry_cost - released_cost
        new_size = state.signed_size + fill_signed
        return replace(
            state,
            signed_size=new_size,
            avg_entry_price=entry_cost / abs(new_size),
            entry_cost=entry_cost,
            realized_pnl=state.realized_pnl + pnl
        ), None

    pnl = (fill.price * held - state.entry_cost) * position_sign
    realized = state.realized_pnl + pnl

    record = PositionRecord(
        coin=fill.coin,
        direction=state.direction,
        open_timestamp=state.open_timestamp,
        close_timestamp=fill.timestamp,
        duration_ms=max(0, fill.timestamp - state.open_timestamp),
        realized_pnl_usd=realized
    )

    remainder = fill.size - held
    if remainder > 0:
        if flip_policy is FlipPolicy.SPLIT:
            return _open(fill, remainder * sign(fill_signed)), record

        logger.debug(
            f"Discarding flip remainder {remainder} for {fill.coin} @ {fill.timestamp}"
        )

    return FLAT, record


def reconstruct(
    fills: Iterable[Fill],
    flip_policy: Union[FlipPolicy, str, None] = None
) -> List[PositionRecord]:
    """
    완료된 포지션 목록 (최근 청산 순)

    잘못된 체결은 건너뛰고, 끝까지 청산되지 않은 포지션은 제외합니다.
    """
    return reconstruct_with_report(fills, flip_policy=flip_policy).records


def reconstruct_with_report(
    fills: Iterable[Fill],
    flip_policy: Union[FlipPolicy, str, None] = None,
    check_duplicates: Optional[bool] = None
) -> ReconstructionResult:
    """재구성 + 제외된 체결과 미청산 포지션"""
    cfg = Settings.reconstruction
    policy = _resolve_policy(flip_policy)
    if check_duplicates is None:
        check_duplicates = cfg.skip_duplicate_trades

    validator = FillValidator(check_duplicates=check_duplicates)
    result = ReconstructionResult()

    # 1. 검증 (전달 순서대로) + 코인별 분할
    by_coin: "OrderedDict[str, List[Fill]]" = OrderedDict()
    total = 0
    for fill in fills:
        total += 1
        try:
            validator.ensure_valid(fill)
        except MalformedFill as e:
            result.rejected.append(RejectedFill(fill=fill, reason=str(e)))
            continue
        by_coin.setdefault(fill.coin, []).append(fill)

    # 2. 코인별 시간순 접기 (동일 시각은 전달 순서 유지)
    for coin, coin_fills in by_coin.items():
        state: PositionState = FLAT
        for fill in sorted(coin_fills, key=lambda f: f.timestamp):
            state, record = apply_fill(state, fill, policy)
            if record is not None:
                result.records.append(record)

        if isinstance(state, OpenPosition):
            result.open_positions[coin] = state

    # 3. 최근 청산 순
    result.records.sort(key=lambda r: r.close_timestamp, reverse=True)

    logger.info(
        f"Reconstructed {len(result.records)} positions from {total} fills | "
        f"Rejected: {len(result.rejected)} | "
        f"Still open: {len(result.open_positions)}"
    )

    return result


def _open(fill: Fill, signed_size: Decimal) -> OpenPosition:
    return OpenPosition(
        direction=Direction.from_sign(signed_size),
        signed_size=signed_size,
        avg_entry_price=fill.price,
        open_timestamp=fill.timestamp,
        realized_pnl=ZERO,
        entry_cost=fill.price * abs(signed_size)
    )


def _resolve_policy(flip_policy: Union[FlipPolicy, str, None]) -> FlipPolicy:
    if flip_policy is None:
        return FlipPolicy(Settings.reconstruction.flip_policy)
    if isinstance(flip_policy, FlipPolicy):
        return flip_policy
    return FlipPolicy(flip_policy.lower())
