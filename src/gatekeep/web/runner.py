"""Uvicorn server runner."""

import uvicorn

from gatekeep.app import App
from gatekeep.config import Config
from gatekeep.web.server import create_fastapi_app


def run_server(app: App, config: Config) -> None:
    """Run the Uvicorn server.

    Uvicorn's own logging config is disabled so its records go through the
    root handler installed by setup_logging.
    """
    fastapi_app = create_fastapi_app(app, config)
    uvicorn.run(
        fastapi_app,
        host=config.host,
        port=config.port,
        log_config=None,
        access_log=config.debug,
        proxy_headers=True,
    )
