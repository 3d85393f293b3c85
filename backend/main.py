"""Process entry point: the products and users API over one MongoDB database."""
from api import ApiBuilder
from core.config import settings
from core.logging import configure_logging, get_logger
from entities import PRODUCTS, USERS

configure_logging(level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON)

log = get_logger("docstore.main")

app = (
    ApiBuilder(
        settings,
        title="Document Store CRUD API",
        description="CRUD over schema-validated MongoDB collections",
    )
    .add_entity(PRODUCTS)
    .add_entity(USERS)
    .build()
)


if __name__ == "__main__":
    import uvicorn

    log.info(
        "serving",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        database=settings.MONGO_DATABASE,
        reload=settings.APP_DEBUG,
    )
    # uvicorn records go through the handler installed by configure_logging
    uvicorn.run(
        "main:app",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        reload=settings.APP_DEBUG,
        log_config=None,
    )
