# crm/middleware/db_middleware.py

from starlette.types import ASGIApp, Receive, Scope, Send
from crm.utils.database import AsyncSessionLocal


class DBSessionMiddleware:
    """Открывает AsyncSession на каждый HTTP-запрос: request.state.db."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = scope.setdefault("state", {})
        db = AsyncSessionLocal()
        state["db"] = db
        try:
            await self.app(scope, receive, send)
        finally:
            # незакоммиченные изменения (ошибка в обработчике) откатываются при close
            await db.close()
