"""
Step override CLI commands - External interface layer
"""

import asyncio
import json
from pathlib import Path
import click
from pydantic import ValidationError

from ..core.config import ConfigLoader
from ..core.exceptions import ConfigError
from ..core.overrides.override_models import validate_document
from ..core.overrides.override_resolver import resolve_override
from ..core.logger import setup_logger


@click.group()
def overrides():
    """Step override document tooling"""
    pass


async def _load_document(file: Path):
    try:
        document = await ConfigLoader().load_yaml(file)
    except ConfigError as e:
        raise click.ClickException(str(e))
    if not isinstance(document, dict):
        raise click.ClickException(f"Override document must be an object: {file}")
    return document


@overrides.command()
@click.argument('file', type=click.Path(exists=True, path_type=Path))
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose logging')
def validate(file: Path, verbose: bool):
    """Validate a step override document (JSON or YAML)"""
    setup_logger("DEBUG" if verbose else "INFO")

    data = asyncio.run(_load_document(file))
    try:
        document = validate_document(data)
    except ValidationError as e:
        click.echo(f"❌ Invalid override document: {file}", err=True)
        click.echo(str(e), err=True)
        raise click.ClickException("Override document validation failed")

    click.echo(f"✅ Override document is valid: {file}")
    if document.journey_name:
        click.echo(f"   Journey: {document.journey_name}")
    for name in document.step_names():
        click.echo(f"   - {name}")


@overrides.command()
@click.argument('file', type=click.Path(exists=True, path_type=Path))
@click.argument('step_json', type=click.Path(exists=True, path_type=Path))
@click.option('--full', is_flag=True, help='Print the whole merged step as JSON')
def apply(file: Path, step_json: Path, full: bool):
    """Apply an override document to a saved step payload and print the field order"""
    document = asyncio.run(_load_document(file))
    try:
        step = json.loads(step_json.read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as e:
        raise click.ClickException(f"Failed to read step payload {step_json}: {e}")
    if not isinstance(step, dict):
        raise click.ClickException(f"Step payload must be an object: {step_json}")

    merged = resolve_override(step, document)

    if full:
        click.echo(json.dumps(merged, indent=2))
        return

    click.echo(f"Step: {merged.get('journeyStep')}")
    for field in merged.get('fields') or []:
        ui = field.get('ui') or {}
        hints = f" ui={json.dumps(ui)}" if ui else ""
        click.echo(f"  {field.get('name')}{hints}")
