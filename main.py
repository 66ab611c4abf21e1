import uvicorn

from a11y_api.platform.config import settings

if __name__ == "__main__":
    uvicorn.run("a11y_api.main:app", host="0.0.0.0", port=8000, reload=settings.ENVIRONMENT == "local")
