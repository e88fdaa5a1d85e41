import logging
import sys

from fastapi import FastAPI

from .routers import payments, webhooks
from .settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

app = FastAPI(title=settings.APP_NAME)

app.include_router(payments.router, tags=["Payments"])
app.include_router(webhooks.router, tags=["Provider Webhooks"])


@app.get("/health", tags=["Ops"])
async def health():
    return {"status": "ok"}
