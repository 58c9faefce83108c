"""Process entry point for the assessment server."""

import uvicorn

from src.core.config import get_settings

settings = get_settings()

if __name__ == "__main__":
    uvicorn.run(
        "src.api.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.APP_ENV == "development",
        log_config=None,
        access_log=False,
        workers=1 if settings.APP_ENV == "development" else 4,
    )
