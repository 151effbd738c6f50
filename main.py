"""
Dispatch Flow Coordinator
=========================
Entry point. Run with: uvicorn main:app

``python main.py`` serves on :8000 and reloads on change when
``ENVIRONMENT=development``.
"""

import uvicorn

from src.api.app import create_app
from src.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.strict_navigation,
        log_level=settings.log_level.lower(),
    )
