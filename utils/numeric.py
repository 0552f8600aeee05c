"""숫자 파싱 및 표시 포맷 헬퍼"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

ZERO = Decimal(0)
ONE = Decimal(1)


def to_decimal(value: Any) -> Decimal:
    """
    문자열/숫자를 Decimal로 변환 (로케일 가정 없음)

    Raises:
        ValueError: 변환 불가 또는 유한하지 않은 값
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a number: {value!r}")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # repr 경유로 이진 부동소수 오차를 피함
        result = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}") from None
    else:
        raise ValueError(f"unsupported numeric type: {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")

    return result


def sign(value: Decimal) -> int:
    """부호 (-1, 0, 1)"""
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def round_places(value: Decimal, places: int = 2) -> Decimal:
    """소수점 places 자리 반올림 (half-up)"""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def format_number(value: Decimal, max_fraction: int = 2) -> str:
    """천 단위 구분, 최대 max_fraction 자리 (불필요한 0 제거)"""
    rounded = round_places(value, max_fraction)
    text = f"{rounded:,.{max_fraction}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_duration(duration_ms: int) -> str:
    """보유 시간 표시 (초 단위, 음수는 0)"""
    seconds = max(0, int(round_places(Decimal(duration_ms) / 1000, 0)))
    return f"{seconds}s"


def format_pnl(value: Optional[Decimal], places: int = 2) -> str:
    """손익 표시 (부호 포함)"""
    if value is None:
        return "-"
    text = format_number(value, places)
    return text if value < 0 or text == "0" else f"+{text}"
