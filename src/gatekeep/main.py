"""Application entry point for the Gatekeep server."""

import structlog

from gatekeep.app import App
from gatekeep.config import Config
from gatekeep.logging import setup_logging
from gatekeep.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    structlog.get_logger(__name__).info("server_starting", host=config.host, port=config.port, debug=config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
