from core.config import Settings, get_settings, settings
from core.database import ConnectionOptions, MongoConnection
from core.logging import (
    api_logger,
    bind_context,
    clear_context,
    configure_logging,
    db_logger,
    docs_logger,
    generate_correlation_id,
    get_logger,
    request_scope,
    service_logger,
)
