"""
ユーティリティモジュールの初期化ファイル

共通のユーティリティ機能をエクスポートします。
"""
# ロガーをエクスポート
from .logger import logger, default_data_dir, initialize_file_logging, set_log_level, enable_debug_logging

# 設定をエクスポート
from .config import get_config, reset_config, Config
