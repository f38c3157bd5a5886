"""
Main entry point for the Hotline report watcher.

This module provides the command-line interface for the worker,
handling startup and configuration.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
import structlog

from .config.settings import load_config
from .errors import SecretsError
from .utils.logging import setup_logging
from .worker import ReportWorker


@click.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set logging level",
)
def serve(config: Optional[Path] = None, log_level: Optional[str] = None) -> None:
    """
    Consume report events and deliver them to subscribers.
    """
    logger = structlog.get_logger()

    try:
        config_data = load_config(config_path=config)

        if log_level:
            config_data.worker.log_level = log_level.upper()

        setup_logging(config_data.worker.log_level)

        logger.info(
            "Starting Hotline report watcher",
            version=config_data.version,
            config_file=str(config) if config else "default",
            log_level=config_data.worker.log_level,
            api_url=config_data.directory.api_url,
        )

        asyncio.run(ReportWorker(config_data).run())

    except KeyboardInterrupt:
        logger.info("Worker shutdown requested")
        sys.exit(0)
    except SecretsError as e:
        logger.error("Queue secrets unavailable", error=e.message)
        sys.exit(1)
    except Exception as e:
        logger.error("Worker startup failed", error=str(e), exc_info=True)
        sys.exit(1)


@click.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    help="Path to save configuration file",
)
def init_config(config: Optional[Path] = None) -> None:
    """Initialize a configuration file with default settings."""
    from .config.settings import create_default_config

    config_path = config or Path("config.json")

    if config_path.exists():
        click.echo(f"Configuration file already exists: {config_path}")
        if not click.confirm("Overwrite?"):
            return

    try:
        create_default_config(config_path)
        click.echo(f"Created configuration file: {config_path}")
        click.echo("\nNext steps:")
        click.echo("1. Provide queue secrets, either as a file:")
        click.echo("   export SECRETS_FILE='/path/to/secrets.json'")
        click.echo("   or as HOTLINE_QUEUE_API_KEY, HOTLINE_QUEUE_HOST, HOTLINE_QUEUE_USERNAME,")
        click.echo("   HOTLINE_QUEUE_PASSWORD and HOTLINE_QUEUE_PORT")
        click.echo(f"2. Start the worker: hotline-watcher serve --config {config_path}")
    except OSError as e:
        click.echo(f"Failed to create configuration file: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(package_name="hotline-watcher")
def cli() -> None:
    """Hotline report watcher CLI."""
    pass


cli.add_command(serve, name="serve")
cli.add_command(init_config, name="init")


if __name__ == "__main__":
    cli()
