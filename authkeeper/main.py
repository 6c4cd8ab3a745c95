#!/usr/bin/env python3
"""
Authkeeper - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules
3. Runs the API server

All business logic is in the modules, following black box principles.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authkeeper import __version__
from authkeeper.config.provider import ConfigProvider, EnvConfigProvider
from authkeeper.logging_config import get_logging_config
from authkeeper.modules.api import (
    create_admin_router,
    create_auth_router,
    create_health_router,
    create_user_router,
    register_exception_handlers,
)
from authkeeper.modules.auth.factory import AuthFactory, AuthStack
from authkeeper.modules.config import get_config
from authkeeper.modules.middleware import AuthGateMiddleware
from authkeeper.modules.storage import StorageModule

logger = logging.getLogger(__name__)


def create_app(
    config_provider: Optional[ConfigProvider] = None,
    auth_stack: Optional[AuthStack] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config_provider: Configuration provider (environment by default)
        auth_stack: Pre-built stack; when given, startup skips storage setup

    Returns:
        Configured FastAPI application
    """
    config_provider = config_provider or EnvConfigProvider()
    api_config = config_provider.get_api_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application lifecycle - initialize and cleanup resources.
        """
        logger.info("Starting Authkeeper API...")
        storage: Optional[StorageModule] = None

        if app.state.auth_stack is None:
            config = get_config()
            redis_client = None
            if config.get("storage_backend") == "redis":
                storage = StorageModule(
                    host=config.get("redis_host"),
                    port=config.get("redis_port"),
                    db=config.get("redis_db"),
                    password=config.get("redis_password"),
                )
                redis_client = await storage.connect()
            else:
                logger.warning("Using in-memory storage; accounts are lost on restart")

            app.state.auth_stack = AuthFactory.build(config_provider, redis_client)
            logger.info("Authentication stack initialized via factory")

        logger.info("Authkeeper API started successfully")

        yield

        # Shutdown
        logger.info("Shutting down Authkeeper API...")
        if storage:
            await storage.disconnect()
        logger.info("Authkeeper API shutdown complete")

    app = FastAPI(
        title="Authkeeper API",
        description="Credential and session authentication service",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.auth_stack = auth_stack

    def current_stack() -> Optional[AuthStack]:
        return app.state.auth_stack

    def current_gate():
        stack = current_stack()
        return stack.gate if stack else None

    auth_config = config_provider.get_auth_config()
    app.middleware("http")(AuthGateMiddleware(current_gate, header_name=auth_config.header_name))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_health_router(config_provider, current_stack))
    app.include_router(create_auth_router(current_stack))
    app.include_router(create_user_router(current_stack))
    app.include_router(create_admin_router(current_stack))
    register_exception_handlers(app)

    return app


app = create_app()


def main():
    """Run the API server."""
    config = get_config()
    # Use dict config for logging, not file path
    uvicorn.run(
        "authkeeper.main:app",
        host=config.get("host"),
        port=config.get("port"),
        log_level=config.get("log_level").lower(),
        reload=config.get("debug"),
        log_config=get_logging_config(config.get("log_level")),
    )


if __name__ == "__main__":
    main()
