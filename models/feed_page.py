"""
フィードページモジュール

Flickr APIのレスポンス1ページ分をデコードしたデータを提供します。
"""
from dataclasses import dataclass
from typing import Any, Mapping, Tuple

from .errors import FeedDecodeError
from .photo_item import PhotoItem


def _parse_count(payload: Mapping, name: str) -> int:
    """
    件数フィールドを非負整数として取り出す

    Flickrは一部のエンドポイントで件数を文字列として返すため、数字のみの文字列も受け付けます。
    """
    if name not in payload:
        raise FeedDecodeError(f"Missing field '{name}'")

    value = payload[name]
    if isinstance(value, bool):
        raise FeedDecodeError(f"Invalid value for '{name}': {value!r}")
    if isinstance(value, str) and value.isdigit():
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise FeedDecodeError(f"Invalid value for '{name}': {value!r}")
    return value


@dataclass(frozen=True)
class FeedPage:
    """
    1回のフェッチで取得したページ

    ページ番号などのナビゲーション情報と、取得順に並んだアイテムを保持します。
    """
    page: int
    pages: int
    per_page: int
    total: int
    items: Tuple[PhotoItem, ...] = ()

    @classmethod
    def from_json(cls, payload: Any) -> "FeedPage":
        """
        flickr.photos.getRecent のレスポンスをデコード

        Args:
            payload: JSONデコード済みのレスポンス ({"photos": {...}, "stat": "ok"})

        Returns:
            FeedPage: デコードされたページ

        Raises:
            FeedDecodeError: レスポンスの構造が不正な場合
        """
        if not isinstance(payload, Mapping):
            raise FeedDecodeError("Response is not an object")

        photos = payload.get("photos")
        if not isinstance(photos, Mapping):
            raise FeedDecodeError("Missing 'photos' object")

        raw_items = photos.get("photo")
        if not isinstance(raw_items, list):
            raise FeedDecodeError("Missing 'photo' list")

        items = []
        for index, raw in enumerate(raw_items):
            item = PhotoItem.from_record(raw)
            if item is None:
                raise FeedDecodeError(f"Malformed photo at index {index}")
            items.append(item)

        return cls(
            page=_parse_count(photos, "page"),
            pages=_parse_count(photos, "pages"),
            per_page=_parse_count(photos, "perpage"),
            total=_parse_count(photos, "total"),
            items=tuple(items),
        )
