import logging
from typing import List

from .base import PeriodicWorker

logger = logging.getLogger(__name__)

class WorkerManager:
    def __init__(self, workers: List[PeriodicWorker]):
        self.workers = workers

    def start_all(self):
        logger.info("🚀 전체 워커 시작")
        for worker in self.workers:
            worker.start()
        logger.info("✅ 전체 워커 시작 완료")

    async def stop_all(self):
        logger.info("⏹️ 전체 워커 종료")
        for worker in self.workers:
            await worker.stop()
        logger.info("✅ 전체 워커 종료 완료")
