"""체결 데이터 품질 검증 모듈"""

from typing import Optional, Set
from dataclasses import dataclass
from enum import Enum

from models.errors import MalformedFill
from models.fill import Fill
from utils.logger_utils import setup_logger


class ValidationErrorType(Enum):
    """검증 에러 타입"""
    NON_POSITIVE_SIZE = "non_positive_size"
    NON_POSITIVE_PRICE = "non_positive_price"
    MISSING_COIN = "missing_coin"
    DUPLICATE = "duplicate"


@dataclass
class ValidationResult:
    """검증 결과"""
    is_valid: bool
    error_type: Optional[ValidationErrorType] = None
    error_message: Optional[str] = None


class FillValidator:
    """
    체결 데이터 검증

    한 번의 재구성 호출 동안만 사용합니다 (중복 체크 상태가 호출 간에 남지 않도록).
    """

    def __init__(self, check_duplicates: bool = True):
        self.logger = setup_logger("fill_validator")
        self.check_duplicates = check_duplicates

        # 중복 체크용 trade id
        self.seen_trade_ids: Set[int] = set()

        # 통계
        self.total_validated = 0
        self.total_errors = 0
        self.error_counts = {error_type: 0 for error_type in ValidationErrorType}

    def validate_fill(self, fill: Fill) -> ValidationResult:
        """체결 데이터 검증 (통과 시 trade id 기록)"""
        self.total_validated += 1

        # 1. 코인
        if not fill.coin:
            return self._record_error(
                ValidationErrorType.MISSING_COIN,
                f"Fill without coin: {fill}"
            )

        # 2. 수량/가격 양수 체크
        if fill.size <= 0:
            return self._record_error(
                ValidationErrorType.NON_POSITIVE_SIZE,
                f"Invalid size: {fill.size} ({fill.coin} @ {fill.timestamp})"
            )

        if fill.price <= 0:
            return self._record_error(
                ValidationErrorType.NON_POSITIVE_PRICE,
                f"Invalid price: {fill.price} ({fill.coin} @ {fill.timestamp})"
            )

        # 3. 중복 체크
        if self.check_duplicates and fill.trade_id is not None:
            if fill.trade_id in self.seen_trade_ids:
                return self._record_error(
                    ValidationErrorType.DUPLICATE,
                    f"Duplicate trade ID: {fill.trade_id}"
                )
            self.seen_trade_ids.add(fill.trade_id)

        return ValidationResult(is_valid=True)

    def ensure_valid(self, fill: Fill) -> Fill:
        """
        검증 후 그대로 반환

        Raises:
            MalformedFill: 검증 실패
        """
        result = self.validate_fill(fill)
        if not result.is_valid:
            raise MalformedFill(f"[{result.error_type.value}] {result.error_message}", fill)
        return fill

    def _record_error(
        self,
        error_type: ValidationErrorType,
        message: str
    ) -> ValidationResult:
        """에러 기록"""
        self.total_errors += 1
        self.error_counts[error_type] += 1
        self.logger.warning(f"[{error_type.value}] {message}")

        return ValidationResult(
            is_valid=False,
            error_type=error_type,
            error_message=message
        )

    def get_error_rate(self) -> float:
        """에러율 계산"""
        if self.total_validated == 0:
            return 0.0
        return self.total_errors / self.total_validated

    def get_stats(self) -> dict:
        """검증 통계"""
        return {
            "total_validated": self.total_validated,
            "total_errors": self.total_errors,
            "error_rate": self.get_error_rate(),
            "error_counts": {
                error_type.value: count
                for error_type, count in self.error_counts.items()
                if count > 0
            }
        }
