"""
FastAPI application serving the extension catalog
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config.settings import ExtensionHostConfig
from ..extensions.catalog import CatalogService, NodeCatalogService
from .routes import create_extensions_router, create_module_router, create_nodes_router

logger = logging.getLogger(__name__)


def create_app(
    config: ExtensionHostConfig | None = None,
    catalog: CatalogService | None = None,
    nodes: NodeCatalogService | None = None,
) -> FastAPI:
    """
    Build the API application.

    Services are started in the lifespan: the install root is created and
    scanned, then watched until shutdown.
    """
    config = config or ExtensionHostConfig.default()
    catalog = catalog or CatalogService(
        root=config.resolved_extensions_dir,
        server_url=config.resolved_server_url,
        max_file_size=config.max_file_size,
        watch=config.watch,
        watch_patterns=config.watch_patterns,
        debounce_ms=config.debounce_ms,
    )
    nodes = nodes or NodeCatalogService(
        root=config.resolved_nodes_dir,
        server_url=config.resolved_server_url,
        watch=config.watch,
        debounce_ms=config.debounce_ms,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting extension host API...")
        await catalog.start()
        await nodes.start()
        try:
            yield
        finally:
            logger.info("Shutting down extension host API...")
            await nodes.stop()
            await catalog.stop()

    app = FastAPI(title="vibenodes extension host", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Cache-Control", "Pragma"],
        max_age=86400,
    )

    app.include_router(create_extensions_router(catalog, config.max_upload_size), prefix="/api")
    app.include_router(create_nodes_router(nodes), prefix="/api")
    app.include_router(create_module_router(catalog))

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "extensions": len(catalog.snapshot),
            "nodes": len(nodes.snapshot),
            "catalogVersion": catalog.snapshot.version,
        }

    app.state.catalog = catalog
    app.state.nodes = nodes
    return app


__all__ = ["create_app"]
