"""세션 단위 인메모리 저장소 (프로세스 종료 시 소멸)"""

from typing import Dict, List, Optional
from sortedcontainers import SortedKeyList

from models.order_book import OrderBookState
from models.position import PositionRecord
from utils.logger_utils import setup_logger


class SessionStore:
    """
    최신 호가창과 재구성된 포지션 보관

    특징:
    - 코인별 최신 OrderBookState만 유지 (매 업데이트마다 통째로 교체)
    - 계정별 포지션을 청산 시각 기준 정렬 인덱스로 보관 (범위 조회)
    """

    def __init__(self):
        self.logger = setup_logger("session_store")

        # coin -> 최신 호가창
        self.books: Dict[str, OrderBookState] = {}

        # account -> 청산 시각 정렬 포지션
        self.positions: Dict[str, SortedKeyList] = {}

        # 통계
        self.total_book_updates = 0

    def put_book(self, coin: str, book: OrderBookState):
        """호가창 교체 (last message wins)"""
        self.books[coin] = book
        self.total_book_updates += 1

    def get_book(self, coin: str) -> Optional[OrderBookState]:
        return self.books.get(coin)

    def drop_book(self, coin: str):
        self.books.pop(coin, None)

    def put_positions(self, account: str, records: List[PositionRecord]):
        """계정의 포지션 목록 교체 (재구성 결과 전체)"""
        index = SortedKeyList(key=lambda r: r.close_timestamp)
        index.update(records)
        self.positions[account] = index
        self.logger.debug(f"Stored {len(records)} positions for {account}")

    def get_positions(self, account: str) -> List[PositionRecord]:
        """최근 청산 순"""
        index = self.positions.get(account)
        if index is None:
            return []
        return _most_recent_first(index)

    def get_positions_closed_between(
        self,
        account: str,
        start_ms: int,
        end_ms: int
    ) -> List[PositionRecord]:
        """청산 시각이 [start_ms, end_ms] 범위인 포지션 (최근 청산 순)"""
        index = self.positions.get(account)
        if index is None:
            return []
        return _most_recent_first(index.irange_key(start_ms, end_ms))

    def get_stats(self) -> dict:
        """저장소 통계"""
        return {
            "coins": sorted(self.books.keys()),
            "total_book_updates": self.total_book_updates,
            "accounts": len(self.positions),
            "positions_in_memory": sum(len(index) for index in self.positions.values())
        }

    def clear(self):
        """전체 데이터 삭제"""
        self.books.clear()
        self.positions.clear()
        self.logger.info("Session store cleared")

    def __repr__(self):
        return (
            f"SessionStore(coins={len(self.books)}, "
            f"accounts={len(self.positions)})"
        )


def _most_recent_first(records) -> List[PositionRecord]:
    # 동일 청산 시각은 저장된 순서 유지
    return sorted(records, key=lambda r: r.close_timestamp, reverse=True)
