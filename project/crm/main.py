# crm/main.py

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# --- загрузка переменных окружения (до чтения settings) ---
load_dotenv()

from crm.config import settings  # noqa: E402
from crm.middleware.db_middleware import DBSessionMiddleware  # noqa: E402
from crm.middleware.trace import request_trace  # noqa: E402
from crm.routes import auth, lead, follow_up  # noqa: E402
from crm.utils.database import init_db, close_db  # noqa: E402
from crm.utils.log import Log  # noqa: E402
from crm.utils.response import (  # noqa: E402
    success_response,
    http_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

# --- sync логгер для раннего старта ---
boot_log = Log()


# ────────────── Lifespan ──────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    boot_log.log_info_sync(target="startup", message="lifespan: startup начат")

    admin_created = await init_db()
    boot_log.log_info_sync(target="startup", message="База инициализирована", data={"admin_created": admin_created})

    app.state.log = Log()
    await app.state.log.log_info(target="startup", message="Async Log инициализирован")

    yield

    # shutdown
    await app.state.log.log_info(target="shutdown", message="Остановка приложения")
    await app.state.log.shutdown()
    await close_db()
    boot_log.log_info_sync(target="shutdown", message="Log и база корректно закрыты")


def create_app() -> FastAPI:
    app = FastAPI(title="Real Estate CRM API", version="1.0.0", lifespan=lifespan)

    app.middleware("http")(request_trace)
    # DB middleware для request.state.db
    app.add_middleware(DBSessionMiddleware)
    # CORS последним: внешний слой. Ответ 500 строит request_trace внутри CORS,
    # обработчик Exception ниже остаётся для ошибок в самих middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/")
    async def read_root():
        return success_response({
            "message": "Real Estate CRM API",
            "version": app.version,
            "environment": settings.ENVIRONMENT,
            "endpoints": {"health": "/health", "auth": "/auth/*", "leads": "/leads", "followUps": "/follow-ups"},
        })

    @app.get("/health")
    async def health():
        return success_response({
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.ENVIRONMENT,
        })

    # ────────────── Подключение роутов ──────────────
    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(lead.router, prefix="/leads", tags=["leads"])
    app.include_router(follow_up.router, prefix="/follow-ups", tags=["follow-ups"])

    return app


app = create_app()

# ────────────── Запуск uvicorn ──────────────
if __name__ == "__main__":
    boot_log.log_info_sync(target="startup", message="Запуск uvicorn.run")
    uvicorn.run(
        "crm.main:app",
        host="127.0.0.1",
        port=8000,
        log_level="info",
        reload=not settings.is_production,
    )
