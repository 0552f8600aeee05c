"""
Hyperliquid info REST 클라이언트

호가 스냅샷과 계정 체결 내역을 조회합니다.
모든 전송 오류는 LoadFailed 하나로 올라갑니다.
"""

import asyncio
from typing import Any, Dict, Optional
import aiohttp

from config.settings import Settings
from models.errors import LoadFailed
from utils.logger_utils import setup_logger


class InfoClient:
    """
    POST /info 요청 래퍼

    사용 예:
        async with InfoClient() as client:
            snapshot = await client.fetch_l2_snapshot("ETH")
    """

    def __init__(
        self,
        info_url: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.info_url = info_url or Settings.hyperliquid.info_url
        self.timeout_sec = timeout_sec or Settings.data.request_timeout_sec
        self.logger = setup_logger("info_client")

        self.session = session
        self._owns_session = session is None

        # 통계
        self.total_requests = 0
        self.failed_requests = 0

    async def __aenter__(self) -> "InfoClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def start(self):
        """세션 생성"""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_sec)
            )
            self._owns_session = True

    async def close(self):
        """세션 종료 (직접 만든 세션만)"""
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None

    async def fetch_l2_snapshot(self, coin: str) -> Dict[str, Any]:
        """호가 스냅샷: {coin, time, levels: [bids, asks]}"""
        return await self._post({"type": Settings.hyperliquid.book_channel, "coin": coin})

    async def fetch_user_fills(self, address: str) -> Any:
        """계정 체결 내역 (배열 또는 배열을 감싼 객체)"""
        address = address.strip()
        if not address:
            raise LoadFailed("Account address is empty")
        return await self._post({"type": Settings.hyperliquid.fills_request_type, "user": address})

    async def _post(self, body: Dict[str, Any]) -> Any:
        if self.session is None:
            await self.start()

        self.total_requests += 1
        try:
            async with self.session.post(self.info_url, json=body) as resp:
                if resp.status != 200:
                    raise LoadFailed(f"Info API error: HTTP {resp.status} for {body['type']}")
                return await resp.json(content_type=None)

        except LoadFailed:
            self.failed_requests += 1
            self.logger.error(f"Request failed: {body}")
            raise
        except asyncio.TimeoutError as e:
            self.failed_requests += 1
            self.logger.error(f"Info API timeout: {body['type']}")
            raise LoadFailed(f"Timeout requesting {body['type']}") from e
        except (aiohttp.ClientError, ValueError) as e:
            self.failed_requests += 1
            self.logger.error(f"Info API fetch error: {e}")
            raise LoadFailed(f"Failed to load {body['type']}: {e}") from e

    def get_stats(self) -> Dict[str, Any]:
        """요청 통계"""
        return {
            "info_url": self.info_url,
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests
        }
