# shopcore/main.py
from fastapi import FastAPI
import uvicorn

from shopcore.api.routers import carts, discounts, health, inventory, orders, webhooks
from shopcore.data.database import engine, init_db
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(create_tables: bool = True) -> FastAPI:
    if create_tables:
        logger.info("Initializing database")
        try:
            init_db(engine)
        except Exception as e:
            logger.error(f"Failed to create tables: {e}")
            raise

    app = FastAPI(
        title="shopcore",
        version="1.0.0",
    )

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(webhooks.router)
    app.include_router(orders.router)
    app.include_router(inventory.router)
    app.include_router(discounts.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
