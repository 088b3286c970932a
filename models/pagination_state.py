"""
ページネーション状態モジュール
"""
from dataclasses import dataclass

from .feed_page import FeedPage


@dataclass(frozen=True)
class PaginationState:
    """
    リモートコンテンツのナビゲーション情報

    フェッチが成功するたびに丸ごと置き換えられ、部分的に変更されることはありません。

    Attributes:
        page: 現在のページ（0は未取得）
        pages: 総ページ数
        per_page: 1ページあたりの件数
        total: 総アイテム数
    """
    page: int = 0
    pages: int = 0
    per_page: int = 0
    total: int = 0

    @property
    def is_initialized(self) -> bool:
        """1ページ以上が適用済みかどうか"""
        return self.page > 0

    @property
    def next_page(self) -> int:
        return self.page + 1

    @classmethod
    def from_feed_page(cls, feed_page: FeedPage) -> "PaginationState":
        return cls(
            page=feed_page.page,
            pages=feed_page.pages,
            per_page=feed_page.per_page,
            total=feed_page.total,
        )
