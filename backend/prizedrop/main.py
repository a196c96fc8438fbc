import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from prizedrop.api.routes import giveaways, callbacks
from prizedrop.config import settings
from prizedrop.db import create_engine, create_session_factory, init_models
from prizedrop.errors import GiveawayError
from prizedrop.repositories.giveaway_repository import GiveawayRepository
from prizedrop.services.giveaway_service import GiveawayPolicy, GiveawayService
from prizedrop.services.notification_service import NotificationService
from prizedrop.services.payment_service import PaymentService
from prizedrop.services.scheduler_service import SchedulerService

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Prizedrop - Community Giveaways")

app.include_router(giveaways.router, prefix="/giveaways", tags=["giveaways"])
app.include_router(callbacks.router, prefix="/giveaways", tags=["callbacks"])


@app.exception_handler(GiveawayError)
async def giveaway_error_handler(request: Request, exc: GiveawayError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.on_event("startup")
async def startup_event():
    """Wire the giveaway service against the configured database and gateways"""
    if getattr(app.state, "giveaway_service", None) is not None:
        return

    engine = create_engine(settings.DB_URL, echo=settings.DB_ECHO)
    await init_models(engine)
    app.state.engine = engine
    app.state.giveaway_service = GiveawayService(
        repository=GiveawayRepository(create_session_factory(engine)),
        payments=PaymentService.from_settings(),
        notifications=NotificationService.from_settings(),
        scheduler=SchedulerService.from_settings(),
        policy=GiveawayPolicy.from_settings(),
    )
    logger.info("Giveaway service ready")


@app.on_event("shutdown")
async def shutdown_event():
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()
