"""
Command-line interface for DiMSum automation.
"""

import dataclasses
import json
import logging
import sys
from enum import Enum
from pathlib import Path

import click
from gspread.exceptions import GSpreadException
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .config import AutomationConfig
from .core.selection import NameRun, subset
from .integrations.dimsum import OUTPUT_SUBDIR, DimSum, ExperimentDesign
from .integrations.itl import ITL
from .integrations.mlwh import MLWH
from .integrations.sheets import (
    DirectorySheetReader,
    GoogleSheetReader,
    ServiceAccountSheetReader,
    SheetsMetadata,
)
from .metadata.client import Client

# Reported as "Error: ..." with exit status 1; OSError includes network failures
EXPECTED_ERRORS = (ValueError, OSError, SQLAlchemyError, GSpreadException)


def build_client(config: AutomationConfig, prefetch: bool = False) -> Client:
    """
    Create a metadata Client from configuration.

    Args:
        config: Loaded configuration
        prefetch: Keep config.sponsors warm in the background
    """
    if config.sheets_dir is not None:
        reader = DirectorySheetReader(config.sheets_dir)
    elif config.credentials_file is not None:
        reader = ServiceAccountSheetReader(config.credentials_file)
    else:
        reader = GoogleSheetReader()

    return Client(
        registry=MLWH.from_url(config.registry_url()),
        metadata_service=SheetsMetadata(reader),
        sheet_id=config.sheet_id,
        cache_lifetime=config.cache_lifetime,
        prefetch=config.sponsors if prefetch else None,
    )


def to_json(obj) -> str:
    """Render a metadata dataclass (or list of them) as JSON."""
    if isinstance(obj, list):
        data = [dataclasses.asdict(o) for o in obj]
    else:
        data = dataclasses.asdict(obj)

    return json.dumps(data, indent=2, default=_json_default)


def _json_default(value):
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _fail(message: str):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _sponsor(config: AutomationConfig, sponsor: str) -> str:
    if sponsor:
        return sponsor
    if config.sponsors:
        return config.sponsors[0]
    _fail("--sponsor is required when no sponsors are configured")


def _select(config: AutomationConfig, sponsor: str, samples):
    desired = [NameRun.from_string(s) for s in samples]

    with build_client(config) as client:
        libraries = client.for_sponsor(_sponsor(config, sponsor))

    return subset(libraries, desired)


@click.group()
@click.version_option(version=__version__)
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True),
              help='YAML configuration file (default: DIMSUM_AUTOMATION_* environment variables)')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, config_path, verbose):
    """DiMSum automation: sample metadata and run preparation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        if config_path:
            config = AutomationConfig.from_yaml(Path(config_path))
        else:
            config = AutomationConfig.from_env()
    except ValueError as e:
        _fail(str(e))

    ctx.obj = config


@cli.command()
@click.option('--sponsor', '-s', type=str, help='Faculty sponsor (default: first configured sponsor)')
@click.pass_obj
def info(config, sponsor):
    """Print the consolidated metadata tree as JSON."""
    try:
        with build_client(config) as client:
            libraries = client.for_sponsor(_sponsor(config, sponsor))
    except EXPECTED_ERRORS as e:
        _fail(str(e))

    click.echo(to_json(libraries))


@cli.command()
@click.argument('samples', nargs=-1, required=True)
@click.option('--sponsor', '-s', type=str, help='Faculty sponsor (default: first configured sponsor)')
@click.pass_obj
def select(config, samples, sponsor):
    """Print the library holding SAMPLES (as sample_id.run_id) as JSON."""
    try:
        library = _select(config, sponsor, samples)
    except EXPECTED_ERRORS as e:
        _fail(str(e))

    click.echo(to_json(library))


@cli.command()
@click.argument('samples', nargs=-1, required=True)
@click.option('--sponsor', '-s', type=str, help='Faculty sponsor (default: first configured sponsor)')
@click.option('--exe', type=str, required=True, help='Path to the DiMSum executable')
@click.option('--fastq-dir', type=click.Path(), required=True,
              help='Directory the FASTQ files are (or will be) in')
@click.option('--output', '-o', type=click.Path(), default='.',
              help='Directory to write the experiment design to')
@click.pass_obj
def run(config, samples, sponsor, exe, fastq_dir, output):
    """Prepare a DiMSum run for SAMPLES (as sample_id.run_id)."""
    output_path = Path(output)

    try:
        library = _select(config, sponsor, samples)
        itl = ITL(library, Path(fastq_dir))

        output_path.mkdir(parents=True, exist_ok=True)
        (output_path / OUTPUT_SUBDIR).mkdir(exist_ok=True)

        design_path = ExperimentDesign.from_library(library).write(output_path)
        experiment = library.experiments[0]
        dimsum = DimSum.from_experiment(exe, fastq_dir, experiment)
    except EXPECTED_ERRORS as e:
        _fail(str(e))

    click.echo(f"Experiment: {experiment.experiment_id} ({len(experiment.samples)} samples)")
    click.echo(f"Design file: {design_path}")
    click.echo(f"Output key: {dimsum.key(experiment.samples)}")

    if itl.sample_runs:
        tsv_cmd, tsv_path = itl.generate_samples_tsv_command()
        click.echo(f"\nFASTQ retrieval ({len(itl.sample_runs)} sample-runs):")
        click.echo(f"  {tsv_cmd}")
        click.echo(f"  then split {tsv_path} per sample-run and fetch each")
    else:
        click.echo("\nAll FASTQs already present")

    click.echo("\nDiMSum command:")
    click.echo(dimsum.command())


if __name__ == '__main__':
    cli()
