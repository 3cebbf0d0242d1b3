import uvicorn
from fastapi import FastAPI

from fulling.configs.app_configs import APP_API_PORT
from fulling.configs.app_configs import APP_HOST
from fulling.server.sandbox.api import router as sandbox_router
from fulling.utils.logger import setup_logger

logger = setup_logger()


def get_application() -> FastAPI:
    application = FastAPI(title="Fulling Sandbox Orchestrator")
    application.include_router(sandbox_router)
    return application


app = get_application()


if __name__ == "__main__":
    logger.notice(f"Starting Fulling sandbox API on http://{APP_HOST}:{APP_API_PORT}/")
    uvicorn.run(app, host=APP_HOST, port=APP_API_PORT)
