"""Status-check API polled by Tally.

Run with ``parcel-tracker-api`` or ``uvicorn parcel_tracker.api:app``.
"""

import logging
from functools import lru_cache
from typing import Optional

import uvicorn
from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .config import AppConfig, configure_logging
from .firebase import get_firestore_client
from .firestore_db import FirestoreManager
from .tally import CHECK_LR_PATH, format_status_json, format_status_text


logger = logging.getLogger(__name__)

app = FastAPI(title="Parcel Tracker API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS", "PATCH", "DELETE", "POST", "PUT"],
    allow_headers=[
        "X-CSRF-Token",
        "X-Requested-With",
        "Accept",
        "Accept-Version",
        "Content-Length",
        "Content-MD5",
        "Content-Type",
        "Date",
        "X-Api-Version",
    ],
)


@lru_cache(maxsize=1)
def get_store() -> FirestoreManager:
    """Firestore access shared by all requests."""
    return FirestoreManager(get_firestore_client())


@app.get(CHECK_LR_PATH)
def check_lr(
    lr: Optional[str] = Query(default=None),
    format: Optional[str] = Query(default=None),
):
    """Tell whether a parcel with the given LR number has been received.

    ``format=text`` answers ``RECEIVED|<transport>|<weight>kg|<amount>`` or
    ``NOT_RECEIVED|||``; otherwise the answer is JSON.
    """
    if lr is None or not lr.strip():
        return JSONResponse(status_code=400, content={"error": "LR Number is required"})

    lr_number = lr.strip()
    logger.info("Checking LR %s", lr_number)
    try:
        parcel = get_store().find_parcel_by_lr(lr_number)
    except Exception:
        logger.exception("Error checking LR %s", lr_number)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    if format == "text":
        return PlainTextResponse(format_status_text(parcel))
    return format_status_json(parcel)


def main() -> None:
    """Serve the API with uvicorn."""
    config = AppConfig.from_env()
    configure_logging(config.log_level)
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
