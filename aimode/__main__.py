"""Run the server: python -m aimode"""

import uvicorn

from aimode.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "aimode.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )
