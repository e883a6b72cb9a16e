#!/usr/bin/env python3
"""
Sample spreadsheet CLI - Dual Mode

This script can operate in two modes:
1. Direct mode (default): Runs the spreadsheet services locally
2. API mode: Makes HTTP requests to the FastAPI backend

Usage:
    # Blank import template
    python scripts/excel_cli.py template --output 样品导入模板.xlsx

    # Workbook -> samples JSON
    python scripts/excel_cli.py import --file samples.xlsx --output samples.json

    # Samples JSON -> workbook with embedded images
    python scripts/excel_cli.py export --input samples.json --output-dir exports/

    # Same against a running API
    python scripts/excel_cli.py import --file samples.xlsx --api-url http://localhost:8000
"""

import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import json
import logging
import re
from typing import List, Optional
from urllib.parse import unquote

import click
import requests
from dotenv import load_dotenv

from backend.models.sample import Sample
from services.errors import WorkbookWriteError
from services.excel_export_service import (
    ExcelExportService, DEFAULT_EXPORT_BASENAME, DEFAULT_TEMPLATE_FILENAME
)
from services.excel_import_service import ExcelImportService, ImportStatus, DEFAULT_IMAGE_URL
from services.image_service import ImageFetcher, DEFAULT_FETCH_TIMEOUT, DEFAULT_FETCH_WORKERS

# Load environment variables
load_dotenv()

# Configure logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'WARNING')
LOG_FILE = os.getenv('LOG_FILE')

_handlers = [logging.StreamHandler(sys.stderr)]
if LOG_FILE:
    _handlers.append(logging.FileHandler(LOG_FILE))

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.WARNING),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=_handlers
)

logger = logging.getLogger('excel_cli')

# Configuration
DEFAULT_IMAGE = os.getenv('DEFAULT_IMAGE_URL', DEFAULT_IMAGE_URL)
FETCH_TIMEOUT = float(os.getenv('IMAGE_FETCH_TIMEOUT', DEFAULT_FETCH_TIMEOUT))
FETCH_WORKERS = int(os.getenv('IMAGE_FETCH_WORKERS', DEFAULT_FETCH_WORKERS))


def _progress_bar(stage: str, percent: float, message: str):
    bar_length = 40
    filled = int(bar_length * percent / 100)
    bar = '█' * filled + '░' * (bar_length - filled)
    click.echo(f"\r[{bar}] {percent:.1f}% - {stage}: {message}", nl=False, err=True)


def load_samples(path: str) -> List[Sample]:
    """Read a JSON array of samples (camelCase or snake_case keys)."""
    with open(path, encoding='utf-8') as f:
        payload = json.load(f)
    if isinstance(payload, dict):
        payload = payload.get('samples') or payload.get('items') or []
    return [Sample.model_validate(item) for item in payload]


def dump_samples(samples: List[Sample], path: Optional[str]):
    """Write samples as JSON to a file, or stdout when no path is given."""
    text = json.dumps(
        [s.model_dump(mode='json', by_alias=True) for s in samples],
        ensure_ascii=False, indent=2
    )
    if path:
        Path(path).write_text(text, encoding='utf-8')
        click.echo(f"✓ Wrote {len(samples)} samples to {path}")
    else:
        click.echo(text)


def _filename_from_disposition(header: str, fallback: str) -> str:
    match = re.search(r"filename\*=UTF-8''([^;]+)", header or '')
    if match:
        return unquote(match.group(1))
    return fallback


@click.group()
def cli():
    """Sample spreadsheet import/export CLI - Dual Mode Support"""


@cli.command('template')
@click.option('--output', '-o', default=DEFAULT_TEMPLATE_FILENAME, show_default=True,
              help='Where to write the template')
@click.option('--api-url', envvar='API_URL', help='FastAPI backend URL (enables API mode)')
def template_cmd(output: str, api_url: Optional[str]):
    """Write the blank import template."""
    if api_url:
        response = requests.get(f"{api_url}/api/samples/template", timeout=30)
        if response.status_code != 200:
            click.echo(f"❌ Template download failed ({response.status_code}): {response.text}", err=True)
            sys.exit(1)
        content = response.content
    else:
        try:
            content = ExcelExportService(image_fetcher=ImageFetcher()).generate_template().content
        except WorkbookWriteError as e:
            click.echo(f"✗ 模板生成失败: {e.message}", err=True)
            sys.exit(1)

    Path(output).write_bytes(content)
    click.echo(f"✓ Template written to {output}")


@cli.command('import')
@click.option('--file', '-f', 'file_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Workbook to import')
@click.option('--output', '-o', help='JSON file for the accepted samples (default: stdout)')
@click.option('--api-url', envvar='API_URL', help='FastAPI backend URL (enables API mode)')
def import_cmd(file_path: str, output: Optional[str], api_url: Optional[str]):
    """Import samples from a workbook."""
    if api_url:
        import_via_api(api_url, file_path)
    else:
        import_direct(file_path, output)


@cli.command('export')
@click.option('--input', '-i', 'input_path', type=click.Path(exists=True, dir_okay=False),
              help='JSON array of samples (direct mode)')
@click.option('--basename', '-b', default=DEFAULT_EXPORT_BASENAME, show_default=True,
              help='File name prefix; the date is appended')
@click.option('--output-dir', '-d', default='.', type=click.Path(file_okay=False),
              help='Directory for the exported workbook')
@click.option('--api-url', envvar='API_URL', help='FastAPI backend URL (enables API mode)')
def export_cmd(input_path: Optional[str], basename: str, output_dir: str, api_url: Optional[str]):
    """Export samples to a workbook with embedded images."""
    if api_url:
        export_via_api(api_url, basename, output_dir)
        return

    if not input_path:
        click.echo("✗ --input is required in direct mode", err=True)
        sys.exit(2)
    export_direct(input_path, basename, output_dir)


# ============================================================================
# Direct Mode Implementation (Uses Services Directly)
# ============================================================================

def import_direct(file_path: str, output: Optional[str]):
    """Parse a workbook with the local import service."""
    click.echo(f"📁 Importing: {file_path}", err=True)

    service = ExcelImportService(default_image_url=DEFAULT_IMAGE, progress_callback=_progress_bar)
    result = service.import_workbook(file_path)
    click.echo(err=True)  # New line after progress bar

    for warning in result.warnings:
        click.echo(f"  ⚠️  row {warning.row} {warning.field}: {warning.message}", err=True)

    if result.status == ImportStatus.READ_FAILED:
        click.echo(f"✗ {result.message} ({result.detail})", err=True)
        sys.exit(1)
    if result.status == ImportStatus.NO_VALID_DATA:
        click.echo(f"✗ {result.message}", err=True)
        sys.exit(1)

    click.echo(
        f"✓ {result.accepted_rows} accepted, {result.rejected_rows} rejected "
        f"({len(result.warnings)} warnings)", err=True
    )
    dump_samples(result.samples, output)


def export_direct(input_path: str, basename: str, output_dir: str):
    """Build the export workbook locally."""
    try:
        samples = load_samples(input_path)
    except (OSError, ValueError) as e:
        click.echo(f"✗ Could not read samples from {input_path}: {e}", err=True)
        sys.exit(1)

    click.echo(f"📦 Exporting {len(samples)} samples", err=True)
    fetcher = ImageFetcher(timeout=FETCH_TIMEOUT, max_workers=FETCH_WORKERS)
    service = ExcelExportService(image_fetcher=fetcher, progress_callback=_progress_bar)

    try:
        result = service.export_samples(samples, basename)
    except WorkbookWriteError as e:
        logger.error(f"Export failed: {e.message}")
        click.echo(f"\n✗ 导出失败，请重试: {e.message}", err=True)
        sys.exit(1)
    click.echo(err=True)

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    destination = Path(output_dir) / result.filename
    destination.write_bytes(result.content)

    click.echo(f"✓ Export written to {destination}")
    click.echo(f"  Rows: {result.rows}")
    click.echo(f"  Images embedded: {result.images_embedded}")
    click.echo(f"  Link-only images: {result.images_failed}")


# ============================================================================
# API Mode Implementation (Uses FastAPI Backend)
# ============================================================================

def import_via_api(api_url: str, file_path: str):
    """Upload a workbook to the backend's import endpoint."""
    click.echo(f"📤 Uploading {file_path} to {api_url}...", err=True)

    try:
        with open(file_path, 'rb') as f:
            files = {
                'file': (Path(file_path).name, f,
                         'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
            }
            response = requests.post(f"{api_url}/api/samples/import", files=files, timeout=60)
    except requests.exceptions.RequestException as e:
        click.echo(f"❌ Network error: {e}", err=True)
        sys.exit(1)

    try:
        body = response.json()
    except ValueError:
        body = {}

    if response.status_code != 200:
        message = body.get('message') or body.get('detail') or response.text
        click.echo(f"❌ Import failed ({response.status_code}): {message}", err=True)
        sys.exit(1)

    click.echo(f"✓ {body.get('message')}")
    click.echo(f"  Imported: {body.get('imported', 0)}")
    click.echo(f"  Rejected rows: {body.get('rejected_rows', 0)}")


def export_via_api(api_url: str, basename: str, output_dir: str):
    """Download the backend's export of its whole sample store."""
    try:
        response = requests.get(
            f"{api_url}/api/samples/export", params={'basename': basename}, timeout=300
        )
    except requests.exceptions.RequestException as e:
        click.echo(f"❌ Network error: {e}", err=True)
        sys.exit(1)

    if response.status_code != 200:
        click.echo(f"❌ Export failed ({response.status_code}): {response.text}", err=True)
        sys.exit(1)

    filename = _filename_from_disposition(
        response.headers.get('Content-Disposition', ''), f"{basename}.xlsx"
    )
    Path(output_dir).mkdir(parents=True, exist_ok=True)
    destination = Path(output_dir) / filename
    destination.write_bytes(response.content)
    click.echo(f"✓ Export written to {destination}")


if __name__ == '__main__':
    cli()
