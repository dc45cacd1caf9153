import asyncio, time
from typing import Optional

class TokenBucket:
    """Requests-per-minute limiter guarding the Places API quota."""
    def __init__(self, rate_per_minute: int, capacity: Optional[int] = None):
        self.rate = rate_per_minute / 60.0
        self.capacity = capacity or rate_per_minute
        self.tokens = float(self.capacity)
        self.last = time.monotonic()
        self.lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.last = now

    async def acquire(self, n: int = 1):
        async with self.lock:
            self._refill()
            while self.tokens < n:
                await asyncio.sleep(0.05)
                self._refill()
            self.tokens -= n

    def available(self) -> float:
        self._refill()
        return self.tokens
