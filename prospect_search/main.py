import logging
from fastapi import FastAPI
from .config.settings import settings
from .routes import search_routes, filter_routes, health_routes
from .services.container import container

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version
)

for module, tag in ((search_routes, "search"), (filter_routes, "filters"), (health_routes, "health")):
    app.include_router(module.router, prefix="/api", tags=[tag])


@app.get("/")
async def root():
    """Service name, version and entry points"""
    return {
        "name": settings.api_title,
        "version": settings.api_version,
        "entity_types": sorted(settings.index_aliases),
        "read_aliases": settings.index_aliases,
        "endpoints": {
            "search": "/api/search/{type}",
            "filters": "/api/filters",
            "filter_values": "/api/filters/{filter_id}/values",
            "health": "/api/health",
            "docs": "/docs",
        },
    }


@app.on_event("startup")
async def startup_event():
    """Report configuration and warn about missing read aliases"""
    logger.info("Starting %s v%s against %s", settings.api_title, settings.api_version, settings.elasticsearch_url)

    available = await container.elasticsearch_service.check_index_health()
    missing = sorted(set(settings.index_aliases.values()) - set(available))
    if missing:
        logger.warning("Read aliases not available: %s", ", ".join(missing))
    else:
        logger.info("Read aliases available: %s", ", ".join(available))


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down %s", settings.api_title)
    await container.elasticsearch_service.close()
