import uvicorn

from .config import API_HOST, API_PORT, DB_PATH, LOG_LEVEL
from .database.schema import init_schema
from .utils.loggers import get_logger

log = get_logger("sales_management")


def main() -> None:
    init_schema(DB_PATH)
    log.info("database ready at %s", DB_PATH)
    uvicorn.run(
        "sales_management.api.app:app",
        host=API_HOST,
        port=API_PORT,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
