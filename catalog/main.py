"""
FastAPI application entry point.
"""

from fastapi import FastAPI
import logging
from redis.exceptions import RedisError
from catalog.controllers.product_controller import ProductController
from catalog.core.cache import ListingCache
from catalog.core.config import Settings
from catalog.data.database import Database
from catalog.data.repository import ProductRepository
from catalog.routers import products
from catalog.service import CatalogService

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_app(settings: Settings = None) -> FastAPI:
    """
    Build the application.

    The database pool and the listing cache live for the lifetime of the
    process: they are created on startup and closed on shutdown.
    """
    settings = settings or Settings()

    app = FastAPI(
        title="Storefront Catalog Service",
        version="1.0.0",
        docs_url="/docs"
    )
    app.state.settings = settings

    @app.on_event("startup")
    async def startup_event():
        """Open the database pool and the cache connection."""
        database = Database(settings)
        await database.connect()

        cache = ListingCache(settings)
        try:
            await cache.connect()
        except RedisError:
            logger.warning("Listing cache unavailable, serving uncached")

        service = CatalogService(ProductRepository(database), cache)
        app.state.database = database
        app.state.cache = cache
        app.state.controller = ProductController(service, settings.uploads_dir)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close the cache connection and the database pool."""
        cache = getattr(app.state, "cache", None)
        if cache is not None:
            await cache.disconnect()
        database = getattr(app.state, "database", None)
        if database is not None:
            await database.close()

    app.include_router(products.router)

    @app.get("/")
    async def root():
        """
        Root endpoint - API information.
        """
        return {
            "service": "Storefront Catalog Service",
            "version": "1.0.0",
            "endpoints": {
                "products": "/api/products",
                "new_arrivals": "/api/products/new-arrivals",
                "best_sellers": "/api/products/best-sellers",
                "flash_deals": "/api/products/flash-deals",
                "search": "/api/products/search?query=",
                "product": "/api/products/{id}",
                "image": "/api/products/image/{id}",
                "docs": "/docs"
            }
        }

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint.
        """
        return {
            "status": "healthy",
            "service": "catalog-service"
        }

    return app


_settings = Settings()
setup_logging(_settings)
app = create_app(_settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "catalog.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
