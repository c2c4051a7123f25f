#!/usr/bin/env python3
"""Launch the WikaTalk audio service with uvicorn.

Reload mode needs an import string rather than the app object, so the
factory module is referenced by path.
"""
import uvicorn

from wikatalk.config.settings import settings

if __name__ == "__main__":
    uvicorn.run(
        "wikatalk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
