"""
계정 체결 내역 → 완료 포지션

InfoClient → DataParser → Reconstructor → SessionStore
"""

from typing import List, Optional

from core.closed_pnl_adapter import summarize_by_order
from core.position_reconstructor import reconstruct_with_report
from data_collector.data_parser import DataParser
from data_collector.info_client import InfoClient
from models.position import PositionRecord
from storage.session_store import SessionStore
from utils.logger_utils import setup_logger

logger = setup_logger("trade_history")


async def load_positions(
    address: str,
    client: InfoClient,
    store: Optional[SessionStore] = None,
    by_order: bool = False
) -> List[PositionRecord]:
    """
    계정의 완료 포지션 조회 (최근 청산 순)

    Args:
        address: 계정 주소
        client: REST 클라이언트
        store: 결과를 보관할 세션 저장소 (선택)
        by_order: True면 거래소 closedPnl을 주문별로 합산

    Raises:
        LoadFailed: 체결 내역 조회 실패
    """
    raw = await client.fetch_user_fills(address)
    fills = DataParser.parse_fills(raw)

    if by_order:
        records = summarize_by_order(fills)
        records.sort(key=lambda r: r.close_timestamp, reverse=True)
    else:
        result = reconstruct_with_report(fills)
        records = result.records
        for coin, position in result.open_positions.items():
            logger.info(
                f"Open position not reported: {coin} {position.direction.value} "
                f"size={position.signed_size} avg={position.avg_entry_price}"
            )

    if store is not None:
        store.put_positions(address.strip(), records)

    return records
