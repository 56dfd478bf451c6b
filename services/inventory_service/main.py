"""
inventory_service/main.py - Seller Inventory and Purchase Ledger Service

PURPOSE:
    Hosts the TransactionCoordinator that keeps products and their purchase
    ledger consistent. Every stock-affecting operation (product creation,
    stock replenishment) commits the product change, its purchase record and
    an outbox event as one unit, or nothing at all.

SERVICE LIFECYCLE:
    1. Build the engine and session factory from Settings
    2. Create tables (and optionally seed sample sellers)
    3. If Kafka is enabled: create topics, start the outbox publisher
    4. Expose the coordinator on app.state for the routing layer

KAFKA EVENTS:
    PUBLISHED (via Outbox Pattern):
        - product.created: Product created with its opening purchase
        - product.stock_added: Stock added with its purchase
        - dlq.events: Outbox rows that repeatedly failed to publish

DATABASE:
    - sellers: id, name, email, user_id, created_at
    - products: id, name, description, price, stock, seller_id, category_id,
      brand_id, user_id, created_at, updated_at
    - purchases: id, user_id, seller_id, product_id, seller_name,
      product_name, quantity, unit_price, total_price, created_at
    - outbox_events: id, aggregate_id, event_type, event_data, published,
      attempts, created_at, published_at

API ENDPOINTS:
    GET /health - Health check
    Product routes are served by the gateway layer, which calls the
    coordinator stored on app.state.

USAGE:
    uvicorn services.inventory_service.main:app --port 8004
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from services.inventory_service import models  # noqa: F401  (registers tables)
from services.inventory_service.config import Settings
from services.inventory_service.coordinator import TransactionCoordinator
from services.inventory_service.outbox import OutboxPublisher
from services.inventory_service.schemas import HealthResponse
from services.inventory_service.seed_data import seed_sellers
from shared.database import init_db, make_engine, make_session_factory
from shared.logging_config import setup_logging

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage app lifecycle."""
        setup_logging(settings.service_name, level=settings.log_level)
        logger.info("Starting Inventory Service...")

        engine = make_engine(settings.sqlalchemy_url)
        session_factory = make_session_factory(engine)
        try:
            init_db(engine)
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

        if settings.seed_sellers:
            with session_factory() as db:
                seed_sellers(db)

        app.state.session_factory = session_factory
        app.state.coordinator = TransactionCoordinator(session_factory)

        publisher = None
        if settings.enable_kafka:
            from shared.kafka_client import BaseKafkaProducer
            from shared.topic_initializer import create_topics

            create_topics(settings.kafka_bootstrap_servers, replication_factor=settings.kafka_replication_factor)
            producer = BaseKafkaProducer(settings.kafka_bootstrap_servers, client_id="inventory-producer")
            publisher = OutboxPublisher(session_factory, producer, poll_interval=settings.outbox_poll_interval)
            publisher.start()
        else:
            logger.info("Kafka disabled, outbox events stay pending")

        yield

        logger.info("Shutting down Inventory Service...")
        if publisher:
            publisher.stop()
            publisher.producer.flush()
        engine.dispose()

    app = FastAPI(title="Inventory Service", version=VERSION, lifespan=lifespan)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        return HealthResponse(status="ok", service=settings.service_name, version=VERSION)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(app, host="0.0.0.0", port=settings.inventory_service_port)
