import asyncio
from bson.int64 import Int64

from flakeid.gen.idWorker import Worker


class AsyncWorker:
    """
    Hands out ids from a Worker to coroutines, as BSON Int64 for MongoDB.

    When the sequence of the current time unit is used up it yields to the
    event loop until the next unit instead of blocking the thread.
    """

    def __init__(self, worker: Worker):
        self.worker = worker
        self._lock = asyncio.Lock()  # safe for async code

    async def __call__(self) -> Int64:
        async with self._lock:
            while True:
                id64 = self.worker.try_next()
                if id64 is not None:
                    return Int64(id64)
                await asyncio.sleep(0)  # wait next time unit
