"""
Wall clock and cancellable sleep.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

class Clock:
    """Real time source used by tail sessions."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float, cancel: Optional[asyncio.Event] = None) -> bool:
        """
        Wait `seconds`, or less if `cancel` is set meanwhile.
        Returns True if the wait was interrupted by `cancel`.
        """
        if cancel is None:
            await asyncio.sleep(seconds)
            return False

        try:
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

def is_near_utc_midnight(moment: datetime, window_minutes: int = 5) -> bool:
    """
    Check whether `moment` falls within `window_minutes` of UTC midnight.

    The window is minute-granular: with the default of 5 it spans
    23:55:00 to 00:05:59 inclusive.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)

    if moment.hour == 23 and moment.minute >= 60 - window_minutes:
        return True
    if moment.hour == 0 and moment.minute <= window_minutes:
        return True
    return False
