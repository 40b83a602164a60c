# listsync/main.py
# Entry point: python -m listsync.main

import uvicorn

from listsync import config
from listsync.observability.logger import configure_logging
from listsync.utils.logger import log_info


def main() -> None:
    configure_logging(config)
    log_info(f"Record store starting at http://{config.HOST}:{config.PORT}")
    uvicorn.run(
        "listsync.main_fastapi:app",
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL.lower(),
        reload=config.DEBUG,
    )


if __name__ == "__main__":
    main()
