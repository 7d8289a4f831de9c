"""Application entry point for the Perlan trivia service."""

from __future__ import annotations

import argparse

from trivia_app.config import Settings, get_settings
from trivia_app.constants.about import APP_NAME, APP_VERSION
from trivia_app.core.services.local_store import JsonFileStore
from trivia_app.core.services.question_generator import QuestionGenerator
from trivia_app.core.services.remote_store import HttpRemoteStore, OfflineRemoteStore, RemoteStore
from trivia_app.core.trivia_manager import TriviaManager
from trivia_app.server.api_server import start_api_server
from trivia_app.server.content_store_server import run_content_store
from trivia_app.utils.logging_config import configure_logging


def build_manager(settings: Settings) -> TriviaManager:
    """Wire the local store, the optional remote store and the generator."""
    store = JsonFileStore(settings.data_dir)
    remote: RemoteStore
    if settings.remote_enabled:
        remote = HttpRemoteStore(settings.remote_store_url, settings.remote_timeout_seconds)
    else:
        remote = OfflineRemoteStore()
    generator = None
    if settings.generator_api_key:
        generator = QuestionGenerator(
            api_key=settings.generator_api_key,
            model=settings.generator_model,
            base_url=settings.generator_url,
        )
    return TriviaManager(store=store, remote=remote, generator=generator)


def main() -> None:
    """Initialize logging, build the manager and serve the API."""
    parser = argparse.ArgumentParser(description=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument(
        "--content-store",
        action="store_true",
        help="run the in-memory remote content store instead of the trivia API",
    )
    args = parser.parse_args()

    settings = get_settings()
    logger = configure_logging(settings.log_level)

    if args.content_store:
        logger.info("Starting content store on %s:%d", settings.host, settings.port)
        run_content_store(host=settings.host, port=settings.port)
        return

    logger.info("Starting %s %s", APP_NAME, APP_VERSION)
    if not settings.remote_enabled:
        logger.info("No remote store configured; running offline from %s", settings.data_dir)
    manager = build_manager(settings)
    start_api_server(manager, host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
