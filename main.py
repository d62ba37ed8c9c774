"""
Entry point for the Wingside API
Runs the FastAPI app under uvicorn
"""

import os

import uvicorn

from wingside.core.settings import settings


def main():
    uvicorn.run(
        "wingside.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=settings.ENVIRONMENT == "development",
        ws="websockets",
    )


if __name__ == "__main__":
    main()
