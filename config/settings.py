"""
중앙 설정 관리

환경 변수와 애플리케이션 설정을 중앙에서 관리합니다.
타입 안정성과 검증을 제공합니다.
"""

import os
from typing import Set, Tuple
from dataclasses import dataclass, field
from pathlib import Path
import dotenv

# 환경 변수 로드
dotenv.load_dotenv()


FLIP_POLICIES = ("split", "truncate")


@dataclass(frozen=True)
class HyperliquidConfig:
    """Hyperliquid API 설정"""
    info_url: str = field(
        default_factory=lambda: os.getenv("HL_INFO_URL", "https://api.hyperliquid.xyz/info")
    )
    ws_url: str = field(
        default_factory=lambda: os.getenv("HL_WS_URL", "wss://api.hyperliquid.xyz/ws")
    )

    # 구독 채널
    book_channel: str = "l2Book"
    fills_request_type: str = "userFills"


@dataclass(frozen=True)
class BookConfig:
    """호가창 설정"""
    default_coin: str = field(default_factory=lambda: os.getenv("DEFAULT_COIN", "ETH"))
    supported_coins: Tuple[str, ...] = ("BTC", "ETH", "SOL", "LINK", "ARB")
    window_size: int = 10                    # 화면에 표시할 호가 개수

    def __post_init__(self):
        """설정 검증"""
        if self.window_size < 1:
            raise ValueError("window_size must be positive")
        if not self.default_coin:
            raise ValueError("default_coin must not be empty")


@dataclass(frozen=True)
class DataConfig:
    """데이터 수집 설정"""
    # WebSocket 설정
    ws_ping_interval_sec: float = 20.0
    ws_ping_timeout_sec: float = 10.0
    ws_reconnect_max_attempts: int = 10
    ws_initial_backoff_sec: float = 1.0
    ws_max_backoff_sec: float = 60.0

    # REST 설정
    request_timeout_sec: float = 10.0

    # 무시할 채널 (구독 응답, pong 등)
    ignored_channels: Set[str] = field(
        default_factory=lambda: {"subscriptionResponse", "pong", "error"}
    )


@dataclass(frozen=True)
class ReconstructionConfig:
    """포지션 재구성 설정"""
    # 포지션 반전 체결 처리: "split" | "truncate"
    flip_policy: str = field(default_factory=lambda: os.getenv("FLIP_POLICY", "split").lower())
    pnl_display_places: int = 2
    skip_duplicate_trades: bool = True

    def __post_init__(self):
        """설정 검증"""
        if self.flip_policy not in FLIP_POLICIES:
            raise ValueError(f"flip_policy must be one of {FLIP_POLICIES}")
        if self.pnl_display_places < 0:
            raise ValueError("pnl_display_places must be >= 0")


@dataclass(frozen=True)
class LoggingConfig:
    """로깅 설정"""
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: Path = field(default_factory=lambda: Path(os.getenv("LOG_FILE", "perp_book.log")))
    log_format: str = "%(asctime)s | %(name)-15s | %(levelname)-8s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"


class Settings:
    """통합 설정 클래스"""

    # 서브 설정 인스턴스
    hyperliquid: HyperliquidConfig = HyperliquidConfig()
    book: BookConfig = BookConfig()
    data: DataConfig = DataConfig()
    reconstruction: ReconstructionConfig = ReconstructionConfig()
    logging: LoggingConfig = LoggingConfig()

    @classmethod
    def validate_all(cls) -> bool:
        """모든 설정 검증"""
        try:
            HyperliquidConfig()
            BookConfig()
            DataConfig()
            ReconstructionConfig()
            LoggingConfig()
            return True
        except ValueError as e:
            print(f"Settings validation failed: {e}")
            return False

    @classmethod
    def get_summary(cls) -> dict:
        """설정 요약 반환"""
        return {
            "hyperliquid": {
                "info_url": cls.hyperliquid.info_url,
                "ws_url": cls.hyperliquid.ws_url
            },
            "book": {
                "default_coin": cls.book.default_coin,
                "window_size": cls.book.window_size
            },
            "reconstruction": {
                "flip_policy": cls.reconstruction.flip_policy,
                "skip_duplicate_trades": cls.reconstruction.skip_duplicate_trades
            },
            "logging": {
                "level": cls.logging.log_level,
                "file": str(cls.logging.log_file)
            }
        }
