# services/core/utils/async_utils.py
from asgiref.sync import async_to_sync


@async_to_sync
async def run_async_in_new_loop(coro):
    """
    Await a coroutine from synchronous code (Celery tasks, management
    commands), whether or not the calling thread already has a loop.
    """
    return await coro


run_async = run_async_in_new_loop
