"""
設定管理モジュール

フィードコア全体の設定を一元管理するためのクラスとユーティリティを提供します。
"""
import os
import copy
import json
from typing import Any, Dict, Optional

from .logger import logger, default_data_dir

class Config:
    """アプリケーション設定を管理するクラス"""

    # デフォルト設定値
    DEFAULT_CONFIG = {
        # アプリケーション全般
        "app": {
            "name": "Flickr Feed",
            "version": "0.1.0",
            "data_dir": "",  # 初期化時に設定される
            "debug_mode": False,
        },

        # Flickr API
        "flickr": {
            "api_key": "",  # 環境変数 FLICKR_API_KEY でも指定可能
            "base_url": "https://api.flickr.com/services/rest/",
            "method": "flickr.photos.getRecent",
            "image_size": "m",         # s: small, m: medium, l: large
            "image_extension": "jpg",
            "timeout_seconds": 15,
            "user_agent": "flickr-feed/0.1",
        },

        # フィード関連
        "feed": {
            "page_size": 40,  # 1リクエストあたりの取得件数（セッション中は固定）
        },

        # 画像キャッシュ関連
        "cache": {
            "memory_limit": 200,     # メモリ内に保持する画像数
            "memory_limit_mb": 64,   # メモリ内に保持する画像の合計サイズ（MB、0で無制限）
        },

        # セッションスナップショット
        "snapshot": {
            "file": "",  # 初期化時に設定される
        },

        # ワーカー関連
        "workers": {
            "max_concurrent": 8,       # 同時実行ワーカーの最大数
            "feed_priority": 1,        # ページ取得ワーカーの優先度
            "image_priority": 0,       # 画像取得ワーカーの優先度
            "eviction_priority": -1,   # キャッシュ削除ワーカーの優先度（低優先度）
            "shutdown_timeout_ms": 5000,
        },
    }

    def __init__(self, config_file: Optional[str] = None, data_dir: Optional[str] = None):
        """
        設定を初期化

        Args:
            config_file: 設定ファイルのパス（省略時はデフォルト位置）
            data_dir: アプリケーションデータディレクトリ（省略時はデフォルト位置）
        """
        # DEFAULT_CONFIG is nested, a shallow copy would share the sections
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)

        # アプリケーションデータディレクトリを設定
        self._app_data_dir = data_dir or default_data_dir()
        os.makedirs(self._app_data_dir, exist_ok=True)

        # デフォルト設定ファイルのパス
        self._config_file = config_file or os.path.join(self._app_data_dir, "config.json")

        # 動的パスを設定
        self._apply_dynamic_paths()

        # 設定ファイルから読み込み
        self.load()

        logger.debug(f"設定を初期化: {self._config_file}")

    def _apply_dynamic_paths(self) -> None:
        self._config["app"]["data_dir"] = self._app_data_dir
        self._config["snapshot"]["file"] = os.path.join(self._app_data_dir, "session_snapshot.json")

    @property
    def config_file(self) -> str:
        return self._config_file

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        設定値を取得

        Args:
            key_path: ドット区切りのキーパス (例: "feed.page_size")
            default: キーが存在しない場合のデフォルト値

        Returns:
            設定値、またはデフォルト値
        """
        current = self._config
        for part in key_path.split('.'):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def set(self, key_path: str, value: Any) -> bool:
        """
        設定値を変更

        Args:
            key_path: ドット区切りのキーパス (例: "cache.memory_limit")
            value: 新しい設定値

        Returns:
            bool: 成功した場合はTrue
        """
        parts = key_path.split('.')
        current = self._config

        # 最後のキー以外をたどる
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                if part in current:
                    logger.error(f"設定値の更新エラー: {key_path} ({part} はセクションではありません)")
                    return False
                current[part] = {}
            current = current[part]

        # 最後のキーに値を設定
        current[parts[-1]] = value
        logger.debug(f"設定を更新: {key_path} = {value}")
        return True

    def load(self) -> bool:
        """
        設定ファイルから設定を読み込む

        Returns:
            bool: 成功した場合はTrue
        """
        if not os.path.exists(self._config_file):
            logger.info(f"設定ファイルが存在しないためデフォルト設定を使用: {self._config_file}")
            self.save()  # デフォルト設定を保存
            return False

        try:
            with open(self._config_file, 'r', encoding='utf-8') as f:
                loaded_config = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"設定ファイルの読み込みエラー: {self._config_file} - {e}")
            return False

        if not isinstance(loaded_config, dict):
            logger.error(f"設定ファイルの形式が不正です: {self._config_file}")
            return False

        # 読み込んだ設定を現在の設定にマージ
        self._merge_config(self._config, loaded_config)
        logger.info(f"設定を読み込みました: {self._config_file}")
        return True

    def save(self) -> bool:
        """
        現在の設定をファイルに保存

        Returns:
            bool: 成功した場合はTrue
        """
        try:
            os.makedirs(os.path.dirname(self._config_file), exist_ok=True)
            with open(self._config_file, 'w', encoding='utf-8') as f:
                json.dump(self._config, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error(f"設定ファイルの保存エラー: {self._config_file} - {e}")
            return False

        logger.info(f"設定を保存しました: {self._config_file}")
        return True

    def reset(self) -> None:
        """設定をデフォルト値にリセット"""
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        self._apply_dynamic_paths()

        logger.info("設定をデフォルト値にリセットしました")
        self.save()

    def _merge_config(self, target: Dict, source: Dict) -> None:
        """
        設定を再帰的にマージ

        Args:
            target: マージ先の辞書
            source: マージ元の辞書
        """
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                # 両方が辞書の場合は再帰的にマージ
                self._merge_config(target[key], value)
            else:
                # それ以外の場合は値を上書き
                target[key] = value

    def get_page_size(self) -> int:
        """
        1ページあたりの取得件数を取得

        Returns:
            int: ページサイズ（不正な値の場合はデフォルト値）
        """
        default = self.DEFAULT_CONFIG["feed"]["page_size"]
        page_size = self.get("feed.page_size", default)
        if not isinstance(page_size, int) or isinstance(page_size, bool) or page_size <= 0:
            logger.warning(f"不正なページサイズ設定 ({page_size!r})、デフォルト値 {default} を使用")
            return default
        return page_size

# 設定インスタンスのシングルトン
_instance = None

def get_config() -> Config:
    """
    設定インスタンスを取得

    Returns:
        Config: 設定インスタンス
    """
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance

def reset_config() -> None:
    """設定をデフォルト値にリセット"""
    get_config().reset()

# エクスポートする関数とクラス
__all__ = ['Config', 'get_config', 'reset_config']
