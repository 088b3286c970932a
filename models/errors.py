"""
例外定義モジュール

フィードの取得・デコード・設定に関する例外クラスを提供します。
"""


class FeedError(Exception):
    """フィード処理に関する例外の基底クラス"""
    pass


class FeedRequestError(FeedError):
    """フィードの通信に失敗した場合の例外"""
    pass


class FeedDecodeError(FeedError):
    """レスポンスのデコードに失敗した場合の例外"""
    pass


class ImageFetchError(FeedError):
    """画像の取得またはデコードに失敗した場合の例外"""
    pass


class ConfigurationError(Exception):
    """必須の設定値が不足している場合の例外"""
    pass
