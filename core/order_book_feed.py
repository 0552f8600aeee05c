"""
호가창 피드 - 스냅샷 + 실시간 구독 통합

REST 스냅샷 → Normalizer ┐
                         ├→ 최신 OrderBookState 교체 → Callback
WebSocket l2Book ────────┘
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from config.settings import Settings
from data_collector.book_normalizer import compute_depth, max_size, mid_price, normalize, window
from data_collector.info_client import InfoClient
from data_collector.websocket_connector import WebSocketConnector
from models.errors import LoadFailed, MalformedPayload, UnrecognizedMessage
from models.order_book import DepthRow, OrderBookState
from storage.session_store import SessionStore
from utils.logger_utils import setup_logger

BookUpdateCallback = Callable[[str, OrderBookState], Awaitable[None]]
ConnectorFactory = Callable[[str], WebSocketConnector]


class OrderBookFeed:
    """
    선택된 코인의 호가창 피드

    - 모든 업데이트는 전체 교체 (병합 없음, 마지막 메시지 우선)
    - 코인 변경 시 진행 중인 스냅샷 요청은 취소하고 결과를 버림
    - 코인 변경 시 기존 구독을 끊고 새 코인으로 재구독
    """

    def __init__(
        self,
        coin: Optional[str] = None,
        on_book_update: Optional[BookUpdateCallback] = None,
        client: Optional[InfoClient] = None,
        connector_factory: Optional[ConnectorFactory] = None,
        store: Optional[SessionStore] = None
    ):
        self.coin = coin or Settings.book.default_coin
        self.logger = setup_logger("order_book_feed")
        self.on_book_update = on_book_update

        self.client = client or InfoClient()
        self.connector_factory = connector_factory or WebSocketConnector
        self.store = store or SessionStore()

        # 코인 변경마다 증가, 이전 세대 결과는 무시
        self.generation = 0
        self.connector: Optional[WebSocketConnector] = None
        self.snapshot_task: Optional[asyncio.Task] = None
        self.stream_task: Optional[asyncio.Task] = None

        # 통계
        self.applied_updates = 0
        self.stale_updates = 0
        self.load_failures = 0

    @property
    def book(self) -> Optional[OrderBookState]:
        """현재 표시 중인 호가창"""
        return self.store.get_book(self.coin)

    def apply_book(self, book: OrderBookState, generation: int) -> bool:
        """
        호가창 교체

        Returns:
            적용 여부 (이전 세대이거나 다른 코인이면 False)
        """
        if generation != self.generation:
            self.stale_updates += 1
            self.logger.debug(f"Discarding stale update (generation {generation})")
            return False

        # coin 필드가 없으면 구독 중인 코인으로 간주
        if book.coin is not None and book.coin != self.coin:
            self.stale_updates += 1
            self.logger.debug(f"Discarding update for {book.coin} (subscribed: {self.coin})")
            return False

        self.store.put_book(self.coin, book)
        self.applied_updates += 1
        return True

    async def _deliver(self, book: OrderBookState, generation: int):
        if self.apply_book(book, generation) and self.on_book_update:
            await self.on_book_update(self.coin, book)

    async def _load_snapshot(self, coin: str, generation: int):
        """스냅샷 요청 (실패 시 기존 데이터 유지)"""
        try:
            payload = await self.client.fetch_l2_snapshot(coin)
        except LoadFailed as e:
            self.load_failures += 1
            self.logger.error(f"Snapshot load failed for {coin}: {e}")
            return

        if generation != self.generation:
            self.stale_updates += 1
            self.logger.info(f"Ignoring snapshot for {coin}: coin changed")
            return

        try:
            book = normalize(payload, strict=True)
        except (MalformedPayload, UnrecognizedMessage) as e:
            self.load_failures += 1
            self.logger.error(f"Malformed snapshot for {coin}: {e}")
            return

        await self._deliver(book, generation)

    async def _run_stream(self, connector: WebSocketConnector, generation: int):
        async def on_book(book: OrderBookState):
            await self._deliver(book, generation)

        await connector.start(on_book)

    async def start(self):
        """현재 코인으로 스냅샷 요청 + 구독 시작"""
        generation = self.generation
        self.logger.info(f"Starting order book feed for {self.coin}...")

        self.snapshot_task = asyncio.create_task(self._load_snapshot(self.coin, generation))
        self.connector = self.connector_factory(self.coin)
        self.stream_task = asyncio.create_task(self._run_stream(self.connector, generation))

    async def switch_coin(self, coin: str):
        """코인 변경: 이전 요청/구독 정리 후 재시작"""
        if coin == self.coin:
            return

        self.logger.info(f"Switching coin: {self.coin} → {coin}")
        await self._teardown()

        self.store.drop_book(self.coin)
        self.coin = coin
        self.generation += 1

        await self.start()

    async def stop(self):
        """피드 종료"""
        self.logger.info(f"Stopping order book feed for {self.coin}...")
        self.generation += 1
        await self._teardown()
        await self.client.close()
        self.logger.info(f"[STATS] {self.get_stats()}")

    async def _teardown(self):
        if self.snapshot_task and not self.snapshot_task.done():
            self.snapshot_task.cancel()

        if self.connector:
            await self.connector.stop()
            self.connector = None

        for task in (self.snapshot_task, self.stream_task):
            if task is None:
                continue
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                self.logger.error(f"Feed task for {self.coin} ended with error: {e}")

        self.snapshot_task = None
        self.stream_task = None

    def get_depth(
        self,
        window_size: Optional[int] = None
    ) -> Tuple[List[DepthRow], List[DepthRow]]:
        """표시용 (bids, asks) 누적 수량 (최우선 호가부터 window_size개)"""
        book = self.book
        if book is None:
            return [], []
        return (
            compute_depth(window(book.bids, window_size)),
            compute_depth(window(book.asks, window_size))
        )

    def get_summary(self) -> Dict[str, Any]:
        """최우선 호가 요약"""
        book = self.book
        if book is None:
            return {"coin": self.coin, "loaded": False}
        return {
            "coin": self.coin,
            "loaded": True,
            "mid_price": mid_price(book),
            "bid_levels": len(book.bids),
            "ask_levels": len(book.asks),
            "max_bid_size": max_size(book.bids),
            "max_ask_size": max_size(book.asks)
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            "coin": self.coin,
            "generation": self.generation,
            "applied_updates": self.applied_updates,
            "stale_updates": self.stale_updates,
            "load_failures": self.load_failures
        }

    def __repr__(self) -> str:
        return f"OrderBookFeed(coin={self.coin}, updates={self.applied_updates})"
