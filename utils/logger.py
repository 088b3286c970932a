"""
ロギングユーティリティモジュール

フィードコア全体で使用される一貫したロギング機能を提供します。
"""
import os
import logging
import sys
from logging.handlers import RotatingFileHandler

# ロガーの設定
logger = logging.getLogger('flickr_feed')

# ログレベルの初期化（デフォルトはINFO）
logger.setLevel(logging.INFO)

# ログフォーマット
formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S')

# コンソールハンドラー
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(formatter)
logger.addHandler(console_handler)


def default_data_dir():
    """アプリケーションデータディレクトリのパスを返す

    環境変数 FLICKR_FEED_HOME が設定されている場合はそちらを優先します。
    """
    return os.environ.get("FLICKR_FEED_HOME") or os.path.join(os.path.expanduser("~"), ".flickr_feed")


def initialize_file_logging(log_dir=None):
    """ファイルベースのロギングを初期化する

    Args:
        log_dir (str, optional): ログディレクトリのパス。指定がない場合は、アプリケーションデータディレクトリ内に作成されます。
    """
    if log_dir is None:
        log_dir = os.path.join(default_data_dir(), "logs")

    os.makedirs(log_dir, exist_ok=True)

    log_file = os.path.join(log_dir, "flickr_feed.log")

    # ローテーティングファイルハンドラー（1MBごとにローテーション、最大5ファイル）
    file_handler = RotatingFileHandler(
        log_file, maxBytes=1024*1024, backupCount=5, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    # 既存のファイルハンドラーを削除（再初期化のため）
    for handler in logger.handlers[:]:
        if isinstance(handler, RotatingFileHandler):
            logger.removeHandler(handler)
            handler.close()

    logger.addHandler(file_handler)
    logger.info("File logging initialized: %s", log_file)


def set_log_level(level):
    """ロガーのログレベルを設定する

    Args:
        level: ログレベル（logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL）
    """
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)

    logger.info("Log level set to %s", logging.getLevelName(level))


def enable_debug_logging():
    """デバッグログを有効化する"""
    set_log_level(logging.DEBUG)


__all__ = ['logger', 'default_data_dir', 'initialize_file_logging', 'set_log_level', 'enable_debug_logging']
