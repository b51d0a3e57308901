import logging
from typing import Dict

from models.nft import WithdrawalStatus
from services.nft.custody import NFTCustodyEngine
from .base import PeriodicWorker

logger = logging.getLogger(__name__)

class NFTWithdrawalWorker(PeriodicWorker):
    """PENDING 출금 요청을 순서대로 처리한다. 다음 주기에 남은 PENDING 요청을 다시 가져간다."""
    name = "NFTWithdrawalWorker"

    def __init__(self, custody: NFTCustodyEngine, interval_seconds: float = 30.0, batch_size: int = 50):
        super().__init__(interval_seconds)
        self.custody = custody
        self.batch_size = batch_size

    async def run_once(self) -> Dict[str, int]:
        request_ids = await self.custody.pending_withdrawal_ids(limit=self.batch_size)
        outcome = {"completed": 0, "failed": 0}
        if not request_ids:
            return outcome

        logger.info(f"🔄 출금 요청 {len(request_ids)}건 처리")
        for request_id in request_ids:
            try:
                result = await self.custody.process_pending_withdrawal(request_id)
            except Exception as e:
                logger.error(f"⛔ 출금 요청 {request_id} 처리 중 오류: {e}", exc_info=True)
                outcome["failed"] += 1
                continue

            if result.ok and result.value.status == WithdrawalStatus.COMPLETED:
                outcome["completed"] += 1
            else:
                outcome["failed"] += 1
        return outcome
