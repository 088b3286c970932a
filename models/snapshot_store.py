"""
セッションスナップショットモジュール

セッション終了時のアイテム一覧をJSONファイルとして保存し、
次回起動時に復元するためのストアを提供します。
"""
import os
import json
from typing import Iterable, List

from utils import logger, get_config
from .photo_item import PhotoItem

SNAPSHOT_VERSION = 1


class SnapshotStore:
    """
    アイテム一覧のスナップショットを保存するストア

    読み込み時にファイルが存在しない・壊れている場合は空リストとして扱い、
    例外を呼び出し元に伝播させません。不正なレコードは個別に破棄されます。
    """

    def __init__(self, file_path: str = None):
        """
        初期化

        Args:
            file_path: スナップショットファイルのパス（省略時は設定値）
        """
        if file_path is None:
            file_path = get_config().get("snapshot.file")
        self.file_path = file_path

    def load(self) -> List[PhotoItem]:
        """
        スナップショットを読み込む

        Returns:
            list: 復元できたアイテムのリスト。スナップショットがない場合は空リスト
        """
        if not os.path.exists(self.file_path):
            logger.debug(f"スナップショットが存在しません: {self.file_path}")
            return []

        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"スナップショットの読み込みに失敗: {self.file_path} - {e}")
            return []

        records = payload.get("photos") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            logger.warning(f"スナップショットの形式が不正です: {self.file_path}")
            return []

        items = []
        for record in records:
            item = PhotoItem.from_record(record)
            if item is not None:
                items.append(item)

        dropped = len(records) - len(items)
        if dropped:
            logger.warning(f"不正なスナップショットレコードを破棄しました: {dropped}件")

        logger.info(f"スナップショットを読み込みました: {len(items)}件")
        return items

    def save(self, items: Iterable[PhotoItem]) -> bool:
        """
        スナップショットを保存

        一時ファイルに書き込んでから置き換えるため、書き込み途中の
        ファイルが読み込まれることはありません。

        Args:
            items: 保存するアイテム

        Returns:
            bool: 保存に成功した場合はTrue
        """
        records = [item.to_record() for item in items]
        payload = {"version": SNAPSHOT_VERSION, "photos": records}
        temp_path = f"{self.file_path}.tmp"

        try:
            directory = os.path.dirname(self.file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(temp_path, self.file_path)
        except OSError as e:
            logger.error(f"スナップショットの保存に失敗: {self.file_path} - {e}")
            if os.path.exists(temp_path):
                os.remove(temp_path)
            return False

        logger.info(f"スナップショットを保存しました: {len(records)}件")
        return True

    def clear(self) -> None:
        """スナップショットを削除"""
        try:
            os.remove(self.file_path)
            logger.debug(f"スナップショットを削除しました: {self.file_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"スナップショットの削除に失敗: {self.file_path} - {e}")
