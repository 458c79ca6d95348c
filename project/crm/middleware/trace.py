# crm/middleware/trace.py

import time
from fastapi import Request

from crm.utils.response import unhandled_exception_handler


async def request_trace(request: Request, call_next):
    """
    Пишет в лог каждый запрос: METHOD path -> status (ms).
    Необработанная ошибка превращается в ответ 500 здесь, внутри CORS,
    поэтому у него есть CORS-заголовки.
    """
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        response = await unhandled_exception_handler(request, e)
    elapsed_ms = (time.perf_counter() - started) * 1000

    log = getattr(request.app.state, "log", None)
    if log:
        await log.log_info(
            "http",
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)",
        )
    return response
