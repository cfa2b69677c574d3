"""
Token CLI commands - External interface layer
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import click

from ..services.token.token_service import TokenService
from ..core.config import ProxySettings
from ..core.exceptions import ProxyError
from ..core.logger import setup_logger


@click.group()
def token():
    """Bearer token acquisition and inspection"""
    pass


@token.command()
@click.option('--offers', is_flag=True, help='Acquire a product-offer API token instead of a journey token')
@click.option('-f', '--format',
              type=click.Choice(['token', 'bearer', 'json']),
              default='token',
              help='Output format (default: token)')
@click.option('--env-file', type=click.Path(exists=True, path_type=Path),
              help='.env file to load before reading settings')
@click.option('-v', '--verbose',
              is_flag=True,
              help='Enable verbose logging')
def get(offers: bool, format: str, env_file: Optional[Path], verbose: bool):
    """Acquire a token with the configured credentials

    Usage:
      # Journey engine token (username/password or client credentials)
      ftproxy token get

      # Product-offer API token as an Authorization header value
      ftproxy token get --offers --format bearer
    """
    log_level = "DEBUG" if verbose else "INFO"
    setup_logger(log_level)

    asyncio.run(_get_token_async(offers, format, env_file))


async def _get_token_async(offers: bool, output_format: str, env_file: Optional[Path]):
    """Async token acquisition"""
    settings = ProxySettings.from_env(env_file=env_file)
    token_service = TokenService(settings)

    try:
        if offers:
            result = await token_service.get_offer_token()
        else:
            result = await token_service.get_engine_token()
    except ProxyError as e:
        click.echo(f"❌ Failed to acquire token: {e}", err=True)
        raise click.ClickException(str(e))

    # Single line for easy copy/paste
    click.echo(token_service.format_token(result, output_format))


@token.command()
@click.argument('token_string')
def decode(token_string: str):
    """Decode and inspect JWT token (without verification)"""
    decoded = TokenService.decode_claims(token_string)
    if decoded is None:
        click.echo("❌ Invalid JWT format", err=True)
        raise click.ClickException("Invalid JWT token")

    if isinstance(decoded.get('exp'), (int, float)):
        exp_time = datetime.fromtimestamp(decoded['exp'], tz=timezone.utc)
        decoded['exp_formatted'] = exp_time.strftime('%Y-%m-%d %H:%M:%S UTC')

    click.echo("🔍 Decoded JWT Token")
    click.echo("=" * 50)
    click.echo(json.dumps(decoded, indent=2))
    click.echo("=" * 50)
