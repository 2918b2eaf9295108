"""Run the chatwatch API server"""

import uvicorn

from api.app import create_app
from tracker.core import get_settings, setup_logging


def main() -> None:
    settings = get_settings()
    setup_logging(settings)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
