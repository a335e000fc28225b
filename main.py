"""
KINETIC BOARD - Main Entry Point
Serves the leaderboard ingestion API.
"""
import uvicorn
from kinetic_board.config.settings import get_settings
from kinetic_board.utils.logger import setup_logging, get_logger

logger = get_logger("main")


def run_api():
    """Run the FastAPI application."""
    settings = get_settings()
    setup_logging()
    logger.info("starting_kinetic_board", version=settings.version, port=settings.port,
                storage=settings.storage.backend)
    uvicorn.run(
        "kinetic_board.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run_api()
