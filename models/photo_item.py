"""
写真アイテムモジュール

フィードに表示される写真1件分のデータを表す不変クラスを提供します。
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from utils import logger

# 永続化レコードの必須フィールドと型
RECORD_FIELDS = (
    ("id", str),
    ("secret", str),
    ("server", str),
    ("farm", int),
    ("title", str),
)


def _has_type(value: Any, expected: type) -> bool:
    # bool is a subclass of int, but never a valid farm id
    if expected is int and isinstance(value, bool):
        return False
    return isinstance(value, expected)


@dataclass(frozen=True)
class PhotoItem:
    """
    写真1件分のデータ

    同一性は識別子 (id) のみで判定されます。
    """
    id: str
    secret: str = field(compare=False)
    server: str = field(compare=False)
    farm: int = field(compare=False)
    title: str = field(compare=False)

    def to_record(self) -> Dict[str, Any]:
        """永続化用の辞書表現を返す"""
        return {
            "id": self.id,
            "secret": self.secret,
            "server": self.server,
            "farm": self.farm,
            "title": self.title,
        }

    @classmethod
    def from_record(cls, record: Any) -> Optional["PhotoItem"]:
        """
        辞書表現からアイテムを復元

        Args:
            record: to_record() と同じ形式の辞書

        Returns:
            PhotoItem or None: 必須フィールドが欠けているか型が不正な場合はNone
        """
        if not isinstance(record, Mapping):
            return None

        for name, expected in RECORD_FIELDS:
            if name not in record or not _has_type(record[name], expected):
                logger.debug(f"Invalid photo record, field '{name}': {record.get(name)!r}")
                return None

        return cls(
            id=record["id"],
            secret=record["secret"],
            server=record["server"],
            farm=record["farm"],
            title=record["title"],
        )
