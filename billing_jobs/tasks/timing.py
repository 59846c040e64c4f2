"""
Cancellation-aware waiting shared by the background loops.
"""

import asyncio


async def wait_or_stop(stop_event: asyncio.Event, seconds: float) -> bool:
    """
    Suspend for `seconds`, waking early if `stop_event` is set.

    Returns:
        True if the loop should stop, False if the full interval elapsed
    """
    if stop_event.is_set():
        return True
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=max(seconds, 0))
        return True
    except asyncio.TimeoutError:
        return False
