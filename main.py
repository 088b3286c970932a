"""
アプリケーションのエントリーポイント

表示層を持たないドライバーとしてフィードコアを起動し、
指定ページ数まで読み込んだ後、セッションを終了してスナップショットを保存します。
"""
import sys
import os
import argparse

from PySide6.QtCore import QCoreApplication, QTimer

from controllers import FeedController, FeedFetcher, FlickrAPI, ImageFetcher, WorkerManager
from models import ImageCache, SnapshotStore
from models.errors import ConfigurationError
from utils import logger, initialize_file_logging, enable_debug_logging, get_config


def parse_args(argv):
    parser = argparse.ArgumentParser(description="Flickr recent photos feed")
    parser.add_argument("--pages", type=int, default=1,
                        help="number of pages to load before exiting (default: 1)")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser.parse_args(argv)


def build_controller(config, api: FlickrAPI) -> FeedController:
    """設定とAPIクライアントからフィードコントローラーを組み立てる"""
    worker_manager = WorkerManager()
    return FeedController(
        feed_fetcher=FeedFetcher(api, worker_manager),
        image_fetcher=ImageFetcher(api, worker_manager),
        image_cache=ImageCache(),
        snapshot_store=SnapshotStore(),
        worker_manager=worker_manager,
        page_size=config.get_page_size(),
    )


def main(argv=None):
    """アプリケーションのメイン関数"""
    args = parse_args(sys.argv[1:] if argv is None else argv)

    # 設定の初期化
    config = get_config()
    app_data_dir = config.get("app.data_dir")

    # ロギングの初期化
    initialize_file_logging(os.path.join(app_data_dir, "logs"))

    if args.debug or config.get("app.debug_mode"):
        enable_debug_logging()
        logger.debug(f"デバッグモードで起動しました: データディレクトリ={app_data_dir}")

    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName(config.get("app.name"))

    try:
        api = FlickrAPI.from_config(config)
    except ConfigurationError as e:
        logger.error(f"{e}. Set flickr.api_key in {config.config_file} or the FLICKR_API_KEY environment variable.")
        return 1

    controller = build_controller(config, api)
    exit_code = 0

    def continue_or_quit():
        pagination = controller.pagination
        if pagination.is_initialized and pagination.page >= args.pages:
            app.quit()
        elif not controller.load_more():
            app.quit()

    def on_content_updated():
        logger.info(f"Content updated: {controller.item_count()} items")
        continue_or_quit()

    def on_items_inserted(start, end):
        logger.info(f"Items inserted: [{start}, {end}), {controller.item_count()} items, all loaded={controller.all_loaded()}")
        continue_or_quit()

    def on_message(title, body):
        nonlocal exit_code
        logger.warning(f"{title}: {body}")
        exit_code = 1
        app.quit()

    def on_about_to_quit():
        # The owner delivers the lifecycle event directly
        controller.on_session_ending()
        controller.worker_manager.wait_for_all(config.get("workers.shutdown_timeout_ms", 5000))

    controller.content_updated.connect(on_content_updated)
    controller.items_inserted.connect(on_items_inserted)
    controller.message_posted.connect(on_message)
    app.aboutToQuit.connect(on_about_to_quit)

    logger.info("フィードを読み込んでいます")
    QTimer.singleShot(0, controller.start)

    app.exec()
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
