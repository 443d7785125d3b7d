"""
Truck Queue — FastAPI entrypoint
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from truckqueue.clients.directory import HttpCatalog, HttpUserDirectory
from truckqueue.core.config import get_settings
from truckqueue.core.errors import OrderQueueError
from truckqueue.core.redis_client import close_redis
from truckqueue.db.database import AsyncSessionLocal, Base, engine
from truckqueue.db.order_store import MemoryOrderStore, OrderStore, SqlOrderStore
from truckqueue.middleware.auth import JWTAuthMiddleware
from truckqueue.orders.service import OrderService
from truckqueue.realtime.notifier import build_notifier
from truckqueue.tasks.contact_tasks import dispatch_order_message
from truckqueue.api import health, notifications, orders

settings = get_settings()
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def build_store() -> OrderStore:
    if settings.STORE_BACKEND == "memory":
        return MemoryOrderStore()
    return SqlOrderStore(AsyncSessionLocal)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.STORE_BACKEND == "sql":
        # Alembic handles migrations in production
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    notifier = build_notifier(settings)
    app.state.notifier = notifier
    app.state.order_service = OrderService(
        store=build_store(),
        catalog=HttpCatalog(),
        users=HttpUserDirectory(),
        notifier=notifier,
        contact=dispatch_order_message,
    )
    yield
    await notifier.close()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Truck Queue",
    description="Food-truck order queue: wait-time estimates, status transitions, real-time updates.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True,
                   allow_methods=["*"], allow_headers=["*"])
app.add_middleware(JWTAuthMiddleware)

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(orders.router)
app.include_router(notifications.router)
app.include_router(health.router)


@app.exception_handler(OrderQueueError)
async def order_queue_error_handler(request: Request, exc: OrderQueueError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
