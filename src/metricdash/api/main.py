from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version as pkg_version

import uvicorn
from fastapi import FastAPI

import metricdash.providers.prometheus  # noqa: F401  registers the prometheus provider type
from metricdash.api.routers import dashboards, health, metrics
from metricdash.config import ConfigTree, load_config
from metricdash.errors import ConfigError
from metricdash.observability import configure_logging, install_http_observability
from metricdash.providers.base import ProviderFactory, build_provider
from metricdash.resolver import ConfigResolver
from metricdash.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _app_version() -> str:
    try:
        return pkg_version("metricdash")
    except PackageNotFoundError:
        return "dev"


def create_app(
    settings: Settings | None = None,
    *,
    tree: ConfigTree | None = None,
    provider_factory: ProviderFactory | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # The tree is loaded once and only ever read afterwards.
        config_tree = tree or load_config(settings.config_path)
        provider_config = ConfigResolver(config_tree).resolve_provider(settings.provider_name or None)
        if provider_config is None:
            raise ConfigError("Requested/Default provider not found")
        factory = provider_factory or build_provider
        provider = factory(config_tree, provider_config, settings)
        logger.info(
            "provider_ready name=%s type=%s address=%s",
            provider_config.name,
            provider.get_type(),
            provider_config.address,
        )
        app.state.config_tree = config_tree
        app.state.provider = provider
        try:
            yield
        finally:
            await provider.close()

    app = FastAPI(title="metricdash", version=_app_version(), lifespan=lifespan)
    install_http_observability(app, component="api")

    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(dashboards.router)
    return app


settings = get_settings()
configure_logging(settings.log_level)
app = create_app(settings)


def run() -> None:
    ssl_kwargs = {}
    if settings.enable_tls:
        if not settings.tls_cert_file or not settings.tls_key_file:
            raise RuntimeError("TLS_CERT_FILE and TLS_KEY_FILE are required when ENABLE_TLS is set")
        ssl_kwargs = {
            "ssl_certfile": settings.tls_cert_file,
            "ssl_keyfile": settings.tls_key_file,
        }

    uvicorn.run(
        "metricdash.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
        **ssl_kwargs,
    )


if __name__ == "__main__":
    run()
