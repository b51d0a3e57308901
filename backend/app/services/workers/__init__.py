from .base import PeriodicWorker
from .collectors import PriceCollectorWorker, OnchainMetricsWorker
from .withdrawal import NFTWithdrawalWorker
from .manager import WorkerManager
