"""시장 데이터 처리 예외"""

from typing import Any, Optional


class MarketDataError(Exception):
    """시장 데이터 처리 기본 예외"""


class MalformedPayload(MarketDataError):
    """호가 페이로드의 숫자 필드를 파싱할 수 없음"""

    def __init__(self, message: str, field_name: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field_name = field_name
        self.value = value


class UnrecognizedMessage(MarketDataError):
    """스냅샷/증분 어느 형태에도 맞지 않는 메시지 (스트림에서는 None으로 무시)"""


class MalformedFill(MarketDataError):
    """잘못된 체결 (수량/가격이 0 이하이거나 필드 누락)"""

    def __init__(self, message: str, fill: Any = None):
        super().__init__(message)
        self.fill = fill


class LoadFailed(MarketDataError):
    """외부 API 요청 실패 (UI에는 단일 '로드 실패'로 표시)"""
