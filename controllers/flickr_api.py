"""
Flickr APIクライアントモジュール

flickr.photos.getRecent によるページ取得と、写真画像のダウンロードを提供します。
すべてのメソッドはブロッキングで、ワーカースレッドから呼び出されることを想定しています。
"""
import os
from typing import Any, Dict, Optional

import requests

from models import FeedPage, PhotoItem
from models.errors import ConfigurationError, FeedDecodeError, FeedRequestError, ImageFetchError
from utils import logger, get_config

# ユーザーに表示されるエラーメッセージ
RETRIEVE_FAILED_MESSAGE = "Unable to retrieve data from remote response"
DECODE_FAILED_MESSAGE = "Unable to decode data"


class FlickrAPI:
    """
    Flickr REST APIのクライアント

    URLの組み立て、HTTP通信、レスポンスのデコードを担当します。
    """
    DEFAULT_BASE_URL = "https://api.flickr.com/services/rest/"
    DEFAULT_METHOD = "flickr.photos.getRecent"
    IMAGE_URL_TEMPLATE = "https://farm{farm}.staticflickr.com/{server}/{id}_{secret}_{size}.{ext}"

    def __init__(self, api_key: str, base_url: str = DEFAULT_BASE_URL, method: str = DEFAULT_METHOD,
                 image_size: str = "m", image_extension: str = "jpg", timeout: float = 15,
                 user_agent: Optional[str] = None, session: Optional[requests.Session] = None):
        """
        初期化

        Args:
            api_key: Flickr APIキー
            base_url: REST APIのエンドポイント
            method: 呼び出すAPIメソッド
            image_size: 画像サイズ (s: small, m: medium, l: large)
            image_extension: 画像URLの拡張子
            timeout: 通信タイムアウト（秒）
            user_agent: User-Agentヘッダー
            session: 使用するrequestsセッション（省略時は新規作成）
        """
        if not api_key:
            raise ConfigurationError("Flickr API key is not configured")

        self.api_key = api_key
        self.base_url = base_url
        self.method = method
        self.image_size = image_size
        self.image_extension = image_extension
        self.timeout = timeout
        self.session = session or requests.Session()
        if user_agent:
            self.session.headers["User-Agent"] = user_agent

    @classmethod
    def from_config(cls, config=None, session: Optional[requests.Session] = None) -> "FlickrAPI":
        """
        設定からクライアントを生成

        APIキーは環境変数 FLICKR_API_KEY が設定ファイルより優先されます。

        Raises:
            ConfigurationError: APIキーが設定されていない場合
        """
        config = config or get_config()
        api_key = os.environ.get("FLICKR_API_KEY") or config.get("flickr.api_key")
        return cls(
            api_key=api_key,
            base_url=config.get("flickr.base_url", cls.DEFAULT_BASE_URL),
            method=config.get("flickr.method", cls.DEFAULT_METHOD),
            image_size=config.get("flickr.image_size", "m"),
            image_extension=config.get("flickr.image_extension", "jpg"),
            timeout=config.get("flickr.timeout_seconds", 15),
            user_agent=config.get("flickr.user_agent"),
            session=session,
        )

    def build_query(self, page: int, per_page: int) -> Dict[str, str]:
        """
        ページ取得用のクエリパラメータを組み立てる

        Args:
            page: ページ番号（1始まり）
            per_page: 1ページあたりの件数
        """
        return {
            "method": self.method,
            "api_key": self.api_key,
            "format": "json",
            "nojsoncallback": "1",
            "page": str(page),
            "per_page": str(per_page),
        }

    def image_url(self, item: PhotoItem, size: Optional[str] = None) -> str:
        """写真の画像URLを組み立てる"""
        return self.IMAGE_URL_TEMPLATE.format(
            farm=item.farm,
            server=item.server,
            id=item.id,
            secret=item.secret,
            size=size or self.image_size,
            ext=self.image_extension,
        )

    def fetch_recent(self, page: int, per_page: int) -> FeedPage:
        """
        最近の写真を1ページ取得

        Args:
            page: ページ番号（1始まり）
            per_page: 1ページあたりの件数

        Returns:
            FeedPage: デコード済みのページ

        Raises:
            FeedRequestError: 通信エラー、HTTPエラー、またはAPIがエラーを返した場合
            FeedDecodeError: レスポンスをデコードできない場合
        """
        logger.info(f"Fetching recent photos: page={page}, per_page={per_page}")
        try:
            response = self.session.get(self.base_url, params=self.build_query(page, per_page),
                                        timeout=self.timeout, headers={"Accept": "application/json"})
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch page {page}: {e}")
            raise FeedRequestError(RETRIEVE_FAILED_MESSAGE) from e

        try:
            payload: Any = response.json()
        except ValueError as e:
            logger.error(f"Response for page {page} is not valid JSON: {e}")
            raise FeedDecodeError(DECODE_FAILED_MESSAGE) from e

        if isinstance(payload, dict) and payload.get("stat") == "fail":
            message = payload.get("message") or RETRIEVE_FAILED_MESSAGE
            logger.error(f"Flickr API returned an error for page {page}: {message}")
            raise FeedRequestError(message)

        try:
            feed_page = FeedPage.from_json(payload)
        except FeedDecodeError as e:
            logger.error(f"Failed to decode page {page}: {e}")
            raise FeedDecodeError(DECODE_FAILED_MESSAGE) from e

        logger.debug(f"Fetched page {feed_page.page}/{feed_page.pages} ({len(feed_page.items)} items, total={feed_page.total})")
        return feed_page

    def fetch_image_data(self, url: str) -> bytes:
        """
        画像をダウンロード

        Args:
            url: 画像URL

        Returns:
            bytes: 画像データ

        Raises:
            ImageFetchError: 通信に失敗した場合、または画像以外が返された場合
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ImageFetchError(f"Failed to download {url}: {e}") from e

        content_type = response.headers.get("Content-Type", "")
        if "image" not in content_type:
            raise ImageFetchError(f"Not an image ({content_type or 'unknown'}): {url}")

        return response.content
