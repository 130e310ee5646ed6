"""Always-admit limiter, useful for unit tests and local runs."""

import sys

from bucketgate.limiter.base import Limiter


class DisabledLimiter(Limiter):
    """Limiter that admits every request and keeps no state."""

    name = "disabled"

    def _allow_n(self, key: str, n: int, rate: float, burst: int) -> bool:
        return True

    def _checked_allow_n(self, key: str, n: int, rate: float, burst: int) -> bool:
        return True

    @property
    def rate(self) -> float:
        return sys.float_info.max

    @property
    def burst(self) -> int:
        return 0
