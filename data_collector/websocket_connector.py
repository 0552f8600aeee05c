"""
WebSocket 연결 관리

Hyperliquid l2Book 구독을 관리하는 모듈입니다.
Auto Reconnection, Health Monitoring을 지원합니다.
"""

import asyncio
import json
import time
import websockets
from typing import Any, Awaitable, Callable, Dict, Optional
from enum import Enum

from config.settings import Settings
from data_collector.book_normalizer import normalize_message
from models.errors import MalformedPayload
from models.order_book import OrderBookState
from utils.logger_utils import setup_logger

BookCallback = Callable[[OrderBookState], Awaitable[None]]


class ConnectionState(Enum):
    """WebSocket 연결 상태"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class WebSocketConnector:
    """
    l2Book 구독 관리자 (코인 1개)

    주요 기능:
    - 연결 시 subscribe 전송, 재연결 시 재구독
    - Auto Reconnection with Exponential Backoff
    - 애플리케이션 레벨 ping (무응답 시 재연결)
    - l2Book 이외 메시지는 조용히 무시

    사용 예:
        connector = WebSocketConnector(coin="ETH")
        await connector.start(on_book)
    """

    def __init__(
        self,
        coin: str,
        url: Optional[str] = None,
        max_reconnect_attempts: Optional[int] = None,
        initial_backoff: Optional[float] = None,
        max_backoff: Optional[float] = None,
        ping_interval: Optional[float] = None,
        ping_timeout: Optional[float] = None
    ):
        cfg = Settings.data

        self.coin = coin
        self.url = url or Settings.hyperliquid.ws_url
        self.logger = setup_logger(f"websocket_{coin.lower()}")

        # 재연결 설정
        self.max_reconnect_attempts = max_reconnect_attempts or cfg.ws_reconnect_max_attempts
        self.initial_backoff = initial_backoff or cfg.ws_initial_backoff_sec
        self.max_backoff = max_backoff or cfg.ws_max_backoff_sec
        self.current_backoff = self.initial_backoff
        self.reconnect_count = 0

        # Health check 설정
        self.ping_interval = ping_interval or cfg.ws_ping_interval_sec
        self.ping_timeout = ping_timeout or cfg.ws_ping_timeout_sec
        self.last_message_time = 0.0

        # 연결 상태
        self.state = ConnectionState.DISCONNECTED
        self.websocket: Optional[Any] = None
        self.running = False
        self.start_time = 0.0

        # 통계
        self.book_count = 0
        self.ignored_count = 0
        self.total_messages = 0
        self.error_count = 0

    def subscription_message(self, method: str = "subscribe") -> str:
        """구독/해제 요청"""
        return json.dumps({
            "method": method,
            "subscription": {"type": Settings.hyperliquid.book_channel, "coin": self.coin}
        })

    async def _connect(self) -> bool:
        """WebSocket 연결 + 구독"""
        try:
            self.state = ConnectionState.CONNECTING
            self.logger.info(f"Connecting to {self.url} ({self.coin})...")

            self.websocket = await websockets.connect(
                self.url,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout
            )
            await self.websocket.send(self.subscription_message())

            self.state = ConnectionState.CONNECTED
            self.start_time = time.time()
            self.last_message_time = time.time()
            self.current_backoff = self.initial_backoff  # 연결 성공 시 backoff 리셋
            self.reconnect_count = 0

            self.logger.info(f"Subscribed to l2Book for {self.coin}")
            return True

        except (OSError, websockets.exceptions.WebSocketException) as e:
            self.state = ConnectionState.FAILED
            self.logger.error(f"Connection failed: {e}")
            return False

    async def _reconnect(self) -> bool:
        """재연결 (Exponential Backoff)"""
        if self.reconnect_count >= self.max_reconnect_attempts:
            self.logger.error(
                f"Max reconnect attempts ({self.max_reconnect_attempts}) reached"
            )
            self.state = ConnectionState.FAILED
            self.running = False
            return False

        self.state = ConnectionState.RECONNECTING
        self.reconnect_count += 1

        self.logger.warning(
            f"Reconnecting (attempt {self.reconnect_count}/{self.max_reconnect_attempts}) "
            f"in {self.current_backoff:.1f}s..."
        )

        await asyncio.sleep(self.current_backoff)

        # Exponential backoff
        self.current_backoff = min(self.current_backoff * 2, self.max_backoff)

        return await self._connect()

    async def _health_check(self):
        """연결 상태 모니터링 (서버는 60초 무통신 시 연결을 끊음)"""
        while self.running:
            await asyncio.sleep(self.ping_interval)

            if self.state != ConnectionState.CONNECTED or not self.websocket:
                continue

            silence = time.time() - self.last_message_time
            if silence > 60:
                self.logger.warning(
                    f"No message received for {silence:.1f}s. Triggering reconnection..."
                )
                await self._trigger_reconnect()
                continue

            try:
                await self.websocket.send(json.dumps({"method": "ping"}))
            except websockets.exceptions.ConnectionClosed as e:
                self.logger.warning(f"Ping failed, connection closed: {e}")

    async def _trigger_reconnect(self):
        """재연결 트리거 (이미 재연결 중이면 무시)"""
        if self.state in (ConnectionState.CONNECTING, ConnectionState.RECONNECTING):
            return
        self.state = ConnectionState.RECONNECTING
        await self._close_socket()
        await self._reconnect()

    async def _receive_messages(self, on_book: BookCallback):
        """메시지 수신 루프"""
        while self.running:
            if self.state == ConnectionState.FAILED:
                await self._reconnect()
                continue

            if self.state != ConnectionState.CONNECTED or not self.websocket:
                await asyncio.sleep(1)
                continue

            try:
                message = await self.websocket.recv()
            except websockets.exceptions.ConnectionClosed as e:
                if not self.running:
                    break
                self.logger.warning(f"Connection closed: {e}")
                await self._trigger_reconnect()
                continue

            self.last_message_time = time.time()
            self.total_messages += 1
            await self.process_message(message, on_book)

    async def process_message(self, message: str, on_book: BookCallback):
        """메시지 파싱 및 콜백 호출"""
        try:
            data = json.loads(message)
        except json.JSONDecodeError as e:
            self.logger.error(f"JSON decode error: {e}")
            self.error_count += 1
            return

        if isinstance(data, dict) and data.get("channel") in Settings.data.ignored_channels:
            self.ignored_count += 1
            return

        try:
            book = normalize_message(data)
        except MalformedPayload as e:
            self.logger.error(f"Malformed book payload dropped: {e}")
            self.error_count += 1
            return

        if book is None:
            self.ignored_count += 1
            self.logger.debug(f"Ignored message: {str(message)[:100]}")
            return

        self.book_count += 1
        await on_book(book)

    async def start(self, on_book: BookCallback):
        """WebSocket 시작 (stop() 또는 재연결 실패까지 실행)"""
        self.logger.info(f"Starting WebSocket connector for {self.coin}...")
        self.running = True

        connected = await self._connect()
        while not connected and self.running:
            connected = await self._reconnect()

        if not connected or not self.running:
            self.logger.error("Initial connection failed")
            self.running = False
            await self._close_socket()
            return

        tasks = [
            asyncio.create_task(self._receive_messages(on_book)),
            asyncio.create_task(self._health_check())
        ]

        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await self.stop()

    async def stop(self):
        """WebSocket 종료"""
        if self.state == ConnectionState.DISCONNECTED and not self.running:
            return

        self.logger.info(f"Stopping WebSocket connector for {self.coin}...")
        self.running = False
        self.state = ConnectionState.DISCONNECTED
        await self._close_socket()

        self.logger.info(
            f"WebSocket stopped | "
            f"Total messages: {self.total_messages} | "
            f"Books: {self.book_count} | "
            f"Ignored: {self.ignored_count} | "
            f"Errors: {self.error_count} | "
            f"Reconnects: {self.reconnect_count}"
        )

    async def _close_socket(self):
        if self.websocket:
            try:
                await self.websocket.close()
            except websockets.exceptions.WebSocketException as e:
                self.logger.error(f"Error closing websocket: {e}")
            self.websocket = None

    def is_connected(self) -> bool:
        """연결 여부 확인"""
        return self.state == ConnectionState.CONNECTED

    def get_stats(self) -> Dict[str, Any]:
        """통계 반환"""
        return {
            "coin": self.coin,
            "state": self.state.value,
            "total_messages": self.total_messages,
            "book_count": self.book_count,
            "ignored_count": self.ignored_count,
            "error_count": self.error_count,
            "reconnect_count": self.reconnect_count,
            "uptime_seconds": time.time() - self.start_time if self.start_time > 0 else 0
        }
