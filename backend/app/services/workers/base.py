import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)

class PeriodicWorker:
    """
    주기 실행 워커 기본 클래스

    ``run_once`` 한 번의 실패가 루프를 멈추지 않는다.
    """
    name = "worker"

    def __init__(self, interval_seconds: float):
        self.interval_seconds = interval_seconds
        self.running_task: Optional[asyncio.Task] = None

    async def run_once(self) -> None:
        raise NotImplementedError

    async def _loop(self):
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"⛔ {self.name} 실행 중 오류: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    def start(self):
        if self.running_task and not self.running_task.done():
            return
        logger.info(f"🚀 {self.name} 시작 (interval={self.interval_seconds}s)")
        self.running_task = asyncio.create_task(self._loop(), name=self.name)

    async def stop(self):
        if self.running_task is None:
            return
        logger.info(f"⏹️ {self.name} 종료")
        self.running_task.cancel()
        try:
            await self.running_task
        except asyncio.CancelledError:
            pass
        self.running_task = None
