import logging

from fastapi import FastAPI

import settings
from api import routes

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s")

app = FastAPI(title="Warehouse Time Clock API", version="0.1.0")


@app.get("/")
def root():
    return {"ok": True, "msg": "API is running"}


app.include_router(routes.router)
