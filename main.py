"""
Hyperliquid 호가창 / 포지션 내역 뷰어

주요 기능:
- 실시간 호가창 (스냅샷 + l2Book 구독, 누적 수량)
- 계정 체결 내역으로 완료 포지션 재구성 (평균단가 방식)

사용 예:
    python main.py orderbook --coin ETH
    python main.py trades 0xabc...
"""

import argparse
import asyncio
from datetime import datetime
from typing import List

from config.settings import Settings
from core.order_book_feed import OrderBookFeed
from core.trade_history import load_positions
from data_collector.book_normalizer import max_size
from data_collector.info_client import InfoClient
from models.errors import LoadFailed
from models.order_book import DepthRow, OrderBookState
from models.position import PositionRecord
from storage.session_store import SessionStore
from utils.logger_utils import setup_logger
from utils.numeric import format_duration, format_number, format_pnl

logger = setup_logger("main")

BAR_WIDTH = 20


def render_side(rows: List[DepthRow], largest, label: str) -> List[str]:
    """한쪽 호가 표시 (수량 막대 = size / max_size)"""
    lines = []
    for row in rows:
        bar = "#" * min(BAR_WIDTH, int(row.size / largest * BAR_WIDTH))
        lines.append(
            f"{label} {format_number(row.price, 2):>12} "
            f"{format_number(row.size, 4):>12} "
            f"{format_number(row.cumulative_size, 4):>12}  {bar}"
        )
    return lines


def render_positions(records: List[PositionRecord]) -> str:
    places = Settings.reconstruction.pnl_display_places
    lines = [f"{'Coin':<8}{'Direction':<10}{'Opened':<21}{'Duration':>10}{'Realized PnL (USD)':>22}"]
    for record in records:
        opened = datetime.fromtimestamp(record.open_timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
        lines.append(
            f"{record.coin:<8}{record.direction.value:<10}{opened:<21}"
            f"{format_duration(record.duration_ms):>10}"
            f"{format_pnl(record.realized_pnl_usd, places):>22}"
        )
    return "\n".join(lines)


async def run_orderbook(coin: str):
    """호가창 실시간 출력"""
    async def on_book_update(current_coin: str, book: OrderBookState):
        bids, asks = feed.get_depth()
        lines = [f"===== {current_coin} ====="]
        lines += render_side(list(reversed(asks)), max_size(book.asks), "ASK")
        lines.append(f"mid: {feed.get_summary()['mid_price']}")
        lines += render_side(bids, max_size(book.bids), "BID")
        print("\n".join(lines))

    feed = OrderBookFeed(coin=coin, on_book_update=on_book_update)
    try:
        await feed.start()
        await feed.stream_task
    finally:
        await feed.stop()


async def run_trades(address: str, by_order: bool):
    """완료 포지션 출력"""
    store = SessionStore()
    async with InfoClient() as client:
        try:
            records = await load_positions(address, client, store, by_order=by_order)
        except LoadFailed as e:
            logger.error(f"Load failed: {e}")
            return

    if not records:
        print("No completed positions.")
        return
    print(render_positions(records))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hyperliquid order book and position history")
    sub = parser.add_subparsers(dest="command", required=True)

    book = sub.add_parser("orderbook", help="stream the order book for a coin")
    book.add_argument("--coin", default=Settings.book.default_coin,
                      choices=Settings.book.supported_coins)

    trades = sub.add_parser("trades", help="list completed positions for an account")
    trades.add_argument("address")
    trades.add_argument("--by-order", action="store_true",
                        help="sum exchange closedPnl per order id instead of reconstructing")
    return parser


def main():
    args = build_parser().parse_args()

    try:
        if args.command == "orderbook":
            asyncio.run(run_orderbook(args.coin))
        else:
            asyncio.run(run_trades(args.address, args.by_order))
    except KeyboardInterrupt:
        print("\n사용자 중단")


if __name__ == "__main__":
    main()
