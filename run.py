#!/usr/bin/env python3
"""Run script for fieldsync."""

import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "fieldsync.api.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        reload=os.getenv("DEBUG", "False").lower() == "true",
    )
