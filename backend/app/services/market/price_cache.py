import time
from typing import Callable, Dict, Optional, Tuple

from .quote import Quote

class PriceCache:
    """
    외부 시세 소스 ID -> (Quote, 저장 시각) 캐시

    항목은 항상 통째로 교체되므로 동시 읽기에 별도 잠금이 필요 없다.
    TTL 이내의 오래된 값은 허용한다.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[Quote, float]] = {}

    def get(self, source_id: str) -> Optional[Quote]:
        entry = self._entries.get(source_id)
        if entry is None:
            return None
        quote, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            return None
        return quote

    def put(self, source_id: str, quote: Quote) -> None:
        self._entries[source_id] = (quote, self._clock())

    def invalidate(self, source_id: str) -> None:
        self._entries.pop(source_id, None)

    def clear(self) -> None:
        self._entries.clear()
