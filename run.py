import os

import uvicorn

from app.config.settings import settings

if __name__ == "__main__":
    print(f"🚀 Starting {settings.APP_NAME} v{settings.VERSION}...")
    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
