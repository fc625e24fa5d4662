# cli.py
import logging

import click

from document_gateway.config.settings import get_settings
from document_gateway.main import configure_logging

# Configure logging
logger = logging.getLogger(__name__)


@click.group()
def cli():
    """CLI commands for the document gateway"""
    pass


@cli.command()
def show_config():
    """Show current configuration (credentials masked)"""
    settings = get_settings()

    print("Current Configuration:")
    for name, value in settings.public_dict().items():
        print(f"  {name}: {value}")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind")
@click.option("--port", default=8000, show_default=True, type=int, help="Port to listen on")
@click.option("--reload", is_flag=True, help="Reload on code changes (development only)")
def serve(host, port, reload):
    """Run the gateway with uvicorn"""
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    logger.info(f"Starting document gateway on {host}:{port}")

    if reload:
        uvicorn.run("document_gateway.main:create_app", factory=True, host=host, port=port, reload=True)
    else:
        from document_gateway.main import create_app
        uvicorn.run(create_app(settings), host=host, port=port)


if __name__ == "__main__":
    cli()
