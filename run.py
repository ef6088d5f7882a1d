#!/usr/bin/env python3
"""
Run script for the VoiceTask inference backend
"""
import uvicorn

from voicetask.config.settings import settings
from voicetask.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port, reload=settings.debug)
