"""tenantroute entrypoint."""

import uvicorn

from tenantroute.config.settings import get_settings


def cli() -> None:
    """Serve the HTTP surface on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "tenantroute.web.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
