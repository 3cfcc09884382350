"""Main FastAPI application for the Tixer tickets service."""

from typing import Optional

from fastapi import FastAPI

from . import __version__
from .api import health, tickets
from .api.middleware import ProblemDetailsMiddleware, register_exception_handlers
from .config import TixerConfig, get_config
from .core.context import Context
from .db.database import create_database_engine, create_session_factory, init_schema
from .store import RetryPolicy, TicketService, TicketStore
from .utils.logging_config import get_logger

logger = get_logger("main")


def create_app(
    store: Optional[TicketService] = None, config: Optional[TixerConfig] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        store: Ticket service to serve. When omitted a ``TicketStore`` is
            built from ``config``; its schema is created and its counter
            provisioned on startup.
        config: Configuration, defaults to the loaded process configuration.
    """
    config = config or get_config()

    app = FastAPI(
        title="Tixer Tickets",
        description="Ticket management service with a transactional ticket counter",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(ProblemDetailsMiddleware)
    register_exception_handlers(app)

    app.state.config = config
    app.state.engine = None

    if store is None:
        engine = create_database_engine(
            config.database.url,
            echo=config.database.echo,
            enable_query_logging=config.database.log_queries,
        )
        store = TicketStore(
            create_session_factory(engine),
            collection=config.store.collection,
            counter_id=config.store.counter_id,
            retry_policy=RetryPolicy.from_config(config.store),
        )
        app.state.engine = engine

        @app.on_event("startup")
        def prepare_store() -> None:
            """Create tables and provision the ticket counter."""
            init_schema(engine)
            total = store.initialize(Context.with_timeout(config.server.request_timeout))
            logger.info(
                f"Store ready: collection '{config.store.collection}', {total} tickets"
            )

        @app.on_event("shutdown")
        def close_store() -> None:
            engine.dispose()
            logger.info("Database connections closed")

    app.state.ticket_service = store

    # Register API routers
    app.include_router(health.router)
    app.include_router(tickets.router)

    return app
