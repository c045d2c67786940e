"""
PharmaGuard API server, run with: python main.py
"""
import uvicorn

from pharmaguard.app import app  # noqa: F401  (ASGI hosts import `main:app`)
from pharmaguard.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "pharmaguard.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else settings.log_level.lower(),
    )
