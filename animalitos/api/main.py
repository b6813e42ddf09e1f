from fastapi import FastAPI
from contextlib import asynccontextmanager
from sqlmodel import Session
from animalitos.config import settings, setup_logging
from animalitos.db.base import engine, init_db
from animalitos.api.routes import router
from animalitos.notify.telegram import TelegramNotifier
from animalitos.services import load_context
from animalitos.worker import Poller

logger = setup_logging(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    with Session(engine) as session:
        ctx = load_context(session)
    poller = Poller(ctx)
    app.state.poller = poller

    notifier = None
    if settings.telegram_bot_token:
        notifier = TelegramNotifier(poller=poller)
        poller.notifier = notifier
        notifier.start()
    else:
        logger.info("TELEGRAM_BOT_TOKEN not set, bot disabled")
    app.state.notifier = notifier

    poller.start()
    yield
    poller.stop()
    if notifier is not None:
        notifier.stop()


app = FastAPI(title="Animalitos Predictor", lifespan=lifespan)
app.include_router(router)


@app.get("/")
def home():
    poller = getattr(app.state, "poller", None)
    return {
        "ok": True,
        "app": "Animalitos Predictor",
        "draws": len(poller.ctx.draws) if poller else 0,
        "stale": poller.is_stale() if poller else None,
    }
