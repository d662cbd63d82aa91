import logging

from fastapi import FastAPI
from sqlalchemy import text

from foodhub import settings
from foodhub.db import engine
from foodhub.routers import auth, order_cycles

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Foodhub Admin")

app.include_router(auth.router)
app.include_router(order_cycles.router)


@app.get("/api/v1/health")
def health():
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok"}
