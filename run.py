#!/usr/bin/env python3
"""
Run script for the Pronunciation Practice API
"""
import uvicorn

from pronunciation.config.settings import settings
from pronunciation.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port, reload=settings.debug)
