#!/usr/bin/env python
"""
Entry point to start the records API server.
Run with: python app.py
"""

import uvicorn
from app.core.config import settings
from app.core.logger import logger

if __name__ == "__main__":
    logger.info(f"Starting {settings.APP_NAME} on http://{settings.HOST}:{settings.PORT}")
    logger.info(f"Environment: {settings.APP_ENV}, auto-reload {'on' if settings.DEBUG else 'off'}")

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning",
        access_log=settings.DEBUG,
    )
