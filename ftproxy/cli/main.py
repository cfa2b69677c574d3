#!/usr/bin/env python3
"""
ftproxy - FintechOS journey proxy
Main entry point for the proxy CLI
"""

from pathlib import Path
from typing import Optional
import click
import uvicorn

from .token import token
from .overrides import overrides
from ..api.app import create_app
from ..core.config import ProxySettings
from ..core.logger import setup_logger
from ..core.version import get_version


@click.group()
def cli():
    """FintechOS journey proxy - serve the API and inspect tokens and step overrides"""
    pass


@cli.command()
def version():
    """Show version information"""
    version_str = get_version()
    click.echo(f"ftproxy version {version_str}")


@cli.command()
@click.option('--host', default=None, help='Bind address (default: HOST or 0.0.0.0)')
@click.option('--port', type=int, default=None, help='Listen port (default: PORT or 3000)')
@click.option('--env-file', type=click.Path(exists=True, path_type=Path),
              help='.env file to load before reading settings')
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose logging')
def serve(host: Optional[str], port: Optional[int], env_file: Optional[Path], verbose: bool):
    """Run the journey proxy HTTP server"""
    settings = ProxySettings.from_env(env_file=env_file)

    log_level = "DEBUG" if verbose or settings.debug_http else "INFO"
    setup_logger(log_level)

    missing = settings.missing_journey_settings()
    if missing:
        click.echo(f"⚠️  Journey calls will fail until configured: {', '.join(missing)}", err=True)

    app = create_app(settings)
    uvicorn.run(app, host=host or settings.host, port=port or settings.port, log_level=log_level.lower())


# Add subcommand groups
cli.add_command(token)
cli.add_command(overrides)

if __name__ == '__main__':
    cli()
