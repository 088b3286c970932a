# --- START REFACTORED controllers/worker_manager.py ---
"""
ワーカーマネージャーモジュール

マルチスレッド処理を管理するクラスを提供します。
"""
from typing import Dict, Optional, Any
import time
import threading
from PySide6.QtCore import QThreadPool, QObject, Signal, Slot
from utils import logger, get_config
from .workers import BaseWorker

class WorkerManagerSignals(QObject):
    """ワーカーマネージャーからのシグナルを定義するクラス"""
    worker_started = Signal(str)  # ワーカーID
    worker_finished = Signal(str, float)  # ワーカーID, 実行時間(秒)
    all_workers_done = Signal()  # すべてのワーカーが完了したときに発行
    error_occurred = Signal(str, str)  # (worker_id, error_message)

class WorkerManager(QObject):
    """
    マルチスレッド処理を管理するクラス

    QThreadPoolを使用してQRunnableベースのワーカーを管理します。
    ワーカーの起動、監視、およびリソース管理を行います。
    """

    def __init__(self, max_threads: int = None):
        """
        初期化

        Args:
            max_threads: 最大スレッド数（Noneの場合は設定またはシステムデフォルト値を使用）
        """
        super().__init__()

        # 設定から最大スレッド数を取得
        config = get_config()
        if max_threads is None:
            max_threads = config.get("workers.max_concurrent", QThreadPool.globalInstance().maxThreadCount())

        # スレッドプールの取得と設定
        self.threadpool = QThreadPool.globalInstance()
        ideal_thread_count = self.threadpool.maxThreadCount()
        if max_threads is not None and max_threads > 0:
            self.threadpool.setMaxThreadCount(max_threads)

        logger.info(f"WorkerManager initialized: Max Threads={self.threadpool.maxThreadCount()} (System Ideal: {ideal_thread_count})")

        # ワーカー管理用のデータ構造
        self.active_workers: Dict[str, BaseWorker] = {}  # ワーカーID → ワーカーインスタンスのマッピング
        self.worker_start_times: Dict[str, float] = {}  # ワーカーID → 開始時間のマッピング
        self.mutex = threading.RLock()

        # シグナルオブジェクト
        self.signals = WorkerManagerSignals()

    def start_worker(self, worker_id: str, worker: BaseWorker, priority: int = 0) -> bool:
        """
        ワーカーを開始

        Args:
            worker_id: ワーカーの識別子
            worker: 実行するワーカー (Must inherit from BaseWorker)
            priority: 優先度 (値が大きいほど優先度が高い)

        Returns:
            bool: ワーカーの起動に成功した場合はTrue
        """
        if not isinstance(worker, BaseWorker):
            logger.error(f"Worker {worker_id} must inherit from BaseWorker.")
            self.signals.error_occurred.emit(worker_id, "Worker type mismatch")
            return False

        with self.mutex:
            # Issued work is never cancelled, so a duplicate ID is a caller bug
            if worker_id in self.active_workers:
                logger.error(f"Worker with ID '{worker_id}' is already active.")
                self.signals.error_occurred.emit(worker_id, "Duplicate worker id")
                return False

            # ワーカーの完了シグナルを接続して自動的にクリーンアップ
            worker.signals.finished.connect(self._handle_worker_finished)
            worker.signals.error.connect(self._handle_worker_error)

            # 新しいワーカーを登録して開始
            self.active_workers[worker_id] = worker
            self.worker_start_times[worker_id] = time.time()

        logger.debug(f"Starting worker: {worker_id}, Priority={priority}")

        try:
            # スレッドプールでワーカーを開始
            self.threadpool.start(worker, priority)
        except RuntimeError as e:
            logger.exception(f"Error starting worker {worker_id}: {e}")
            with self.mutex:
                self.active_workers.pop(worker_id, None)
                self.worker_start_times.pop(worker_id, None)
            self.signals.error_occurred.emit(worker_id, f"Failed to start worker: {e}")
            return False

        self.signals.worker_started.emit(worker_id)
        return True

    @Slot(str)
    def _handle_worker_finished(self, worker_id: str):
        """Handles the finished signal from a worker."""
        self.mark_worker_finished(worker_id)

    @Slot(str, str)
    def _handle_worker_error(self, worker_id: str, error_message: str):
        """Forwards a worker error. The finished signal that follows does the cleanup."""
        self.signals.error_occurred.emit(worker_id, error_message)

    def wait_for_all(self, timeout_ms: int = -1) -> bool:
        """
        すべてのワーカーの完了を待機 (Uses QThreadPool.waitForDone)

        Args:
            timeout_ms: タイムアウト時間（ミリ秒）。-1で無限に待機。

        Returns:
            bool: タイムアウトせずにすべてのワーカーが完了した場合はTrue
        """
        logger.info(f"Waiting for all workers to complete (Timeout: {timeout_ms}ms)...")
        result = self.threadpool.waitForDone(timeout_ms)
        if not result:
            logger.warning(f"waitForDone timed out. {self.get_active_workers_count()} workers potentially still active.")
        return result

    def get_active_workers_count(self) -> int:
        """現在アクティブなワーカーの数を取得"""
        with self.mutex:
            return len(self.active_workers)

    def is_worker_active(self, worker_id: str) -> bool:
        """指定されたワーカーがアクティブかどうかを確認"""
        with self.mutex:
            return worker_id in self.active_workers

    def get_status(self) -> Dict[str, Any]:
        """ワーカーマネージャーの状態情報を取得"""
        with self.mutex:
            current_time = time.time()
            elapsed = [current_time - started for started in self.worker_start_times.values()]
            return {
                'active_workers': len(self.active_workers),
                'max_threads': self.threadpool.maxThreadCount(),
                'active_threads_in_pool': self.threadpool.activeThreadCount(),
                'longest_running_seconds': max(elapsed, default=0),
                'active_worker_ids': list(self.active_workers.keys()),
            }

    def mark_worker_finished(self, worker_id: str) -> Optional[float]:
        """
        ワーカーを完了状態としてマーク（内部使用、スロットから呼び出される）

        Args:
            worker_id: 完了したワーカーの識別子

        Returns:
            float or None: 実行時間（秒）。既に完了済みの場合はNone
        """
        with self.mutex:
            if worker_id not in self.active_workers:
                logger.debug(f"Worker '{worker_id}' already marked as finished.")
                return None

            start_time = self.worker_start_times.pop(worker_id, 0)
            elapsed_time = time.time() - start_time if start_time > 0 else 0
            del self.active_workers[worker_id]
            all_done = not self.active_workers

        logger.debug(f"Worker '{worker_id}' marked as finished. Elapsed: {elapsed_time:.2f}s")
        self.signals.worker_finished.emit(worker_id, elapsed_time)

        # すべてのワーカーが完了した場合にシグナルを発行
        if all_done:
            logger.debug("All managed workers have finished.")
            self.signals.all_workers_done.emit()
        return elapsed_time

# --- END REFACTORED controllers/worker_manager.py ---
