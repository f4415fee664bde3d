"""Application entry point for the CampusConnect backend server."""

from campusconnect.app import App
from campusconnect.config import Config
from campusconnect.logging import setup_logging
from campusconnect.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
