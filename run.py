"""
Trade Dashboard - Application Runner

    python run.py            # serve on APP_HOST:APP_PORT
    APP_RELOAD=true python run.py
"""

import uvicorn
from dashboard_api.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "dashboard_api.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_reload,
        log_level=settings.log_level.lower(),
    )
