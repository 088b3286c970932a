# --- START REFACTORED controllers/workers.py ---
"""
ワーカーモジュール

バックグラウンド処理を行うワーカークラスの基盤を提供します。
"""
import time
import logging
from typing import Optional, Any

from PySide6.QtCore import QObject, Signal, Slot, QRunnable

from utils import logger


class WorkerSignals(QObject):
    """
    ワーカーが発行するシグナルを定義するクラス

    QRunnableはQObjectを継承していないため、このクラスを通じてシグナルを発行します。
    このオブジェクトはワーカーを生成したスレッドに属するため、
    スレッドプールから発行されたシグナルは生成側のスレッドで受信されます。
    """
    started = Signal(str)  # worker_id
    finished = Signal(str)  # worker_id（成功でもエラーでも）
    error = Signal(str, str)  # (worker_id, error_message)
    result = Signal(str, object)  # (worker_id, 処理結果)


class BaseWorker(QRunnable):
    """
    基本ワーカークラス

    すべてのワーカークラスの基底クラスとして使用します。
    実行時間の計測、ログ出力、エラーのシグナル変換などの共通機能を提供します。
    一度開始されたワーカーはキャンセルされません。
    """

    def __init__(self, worker_id: Optional[str] = None):
        """
        初期化

        Args:
            worker_id: ワーカーの識別子（省略時は自動生成）
        """
        super().__init__()
        self.signals = WorkerSignals()
        self._start_time = 0.0
        self.worker_id = worker_id or f"worker_{id(self)}"

    def describe_error(self, error: Exception) -> str:
        """
        エラーシグナルで通知するメッセージを生成

        Args:
            error: work() から送出された例外

        Returns:
            str: エラーメッセージ
        """
        return f"{type(error).__name__}: {error}"

    @Slot()
    def run(self) -> None:
        """ワーカーの実行スレッドエントリポイント"""
        self._start_time = time.time()
        logger.debug(f"Worker '{self.worker_id}' started.")
        error_occurred = False

        try:
            try:
                self.signals.started.emit(self.worker_id)
            except RuntimeError as e:
                logger.warning(f"Could not emit started signal for {self.worker_id}: {e}")

            result = self.work()

            try:
                self.signals.result.emit(self.worker_id, result)
                logger.debug(f"Worker '{self.worker_id}' emitted result.")
            except RuntimeError as e:
                logger.warning(f"Could not emit result signal for {self.worker_id}: {e}")

        except Exception as e:
            error_occurred = True
            logger.error(f"Worker '{self.worker_id}' encountered an error: {type(e).__name__}: {e}")
            logger.debug(f"Error details for {self.worker_id}:", exc_info=True)

            try:
                self.signals.error.emit(self.worker_id, self.describe_error(e))
            except RuntimeError as sig_e:
                logger.warning(f"Could not emit error signal for {self.worker_id}: {sig_e}")

        finally:
            elapsed = time.time() - self._start_time
            log_level = logging.WARNING if error_occurred else logging.DEBUG
            logger.log(log_level, f"Worker '{self.worker_id}' finished. Elapsed: {elapsed:.3f}s")

            # 成功・エラーにかかわらず終了シグナルを発行
            try:
                self.signals.finished.emit(self.worker_id)
            except RuntimeError as e:
                logger.warning(f"Could not emit finished signal for {self.worker_id}: {e}")

    def work(self) -> Any:
        """
        実際の処理を行うメソッド (Must be overridden by subclasses)

        Returns:
            任意の型のオブジェクト（サブクラスでの実装による）

        Raises:
            NotImplementedError: オーバーライドされていない場合
        """
        raise NotImplementedError("Subclasses must implement the 'work' method.")

# --- END REFACTORED controllers/workers.py ---
