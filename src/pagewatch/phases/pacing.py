import asyncio


async def pace(request_index: int, delay_seconds: float) -> None:
    """Sleep between consecutive remote requests; never before the first one."""
    if request_index > 0 and delay_seconds > 0:
        await asyncio.sleep(delay_seconds)
