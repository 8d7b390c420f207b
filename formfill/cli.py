"""formfill command line entry point."""

from __future__ import annotations

import json
from pathlib import Path
import sys
from typing import NoReturn, Optional

import typer

from formfill.config import Settings, configure_logging, load_settings
from formfill.model.field import TemplateError
from formfill.model.request import RequestStateError
from formfill.model.template import Template
from formfill.pdf.loader import PdfLoadError, load_pdf, read_document_bytes
from formfill.pdf.renderer import PdfRenderError, render_page
from formfill.service.fill import FillError, FillService, fill_document
from formfill.service.preview import render_fill_preview
from formfill.state.store import RequestStore, StoreError, TemplateStore

app = typer.Typer(
    name="formfill",
    help="Build fillable PDF templates and generate filled documents",
    no_args_is_help=True,
)


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj["settings"]


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _read_json(path: Path) -> dict:
    try:
        with path.open(encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, ValueError) as exc:
        _fail(f"Cannot read {path}: {exc}")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML settings file"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
) -> None:
    """formfill CLI."""
    settings = load_settings(config)
    configure_logging("DEBUG" if debug else settings.log_level)
    ctx.obj = {"settings": settings}


@app.command()
def author(ctx: typer.Context) -> None:
    """Open the template authoring window."""
    from PySide6.QtWidgets import QApplication

    from formfill.ui.main_window import MainWindow

    qt_app = QApplication.instance() or QApplication(sys.argv)
    window = MainWindow(_settings(ctx))
    window.show()
    raise typer.Exit(code=qt_app.exec())


@app.command("new-template")
def new_template(
    ctx: typer.Context,
    pdf: Path = typer.Argument(..., help="Base PDF document"),
    name: str = typer.Option("", "--name", "-n", help="Template name"),
) -> None:
    """Upload a base PDF and create an empty template for it."""
    settings = _settings(ctx)
    store = TemplateStore(settings.templates_dir, settings.uploads_dir)
    try:
        template = store.create_from_document(name or pdf.stem, pdf)
    except (TemplateError, StoreError) as exc:
        _fail(str(exc))
    typer.echo(f"Created template {template.id}: {template.name} ({template.page_count} page(s))")


@app.command()
def templates(ctx: typer.Context) -> None:
    """List stored templates."""
    settings = _settings(ctx)
    for template in TemplateStore(settings.templates_dir, settings.uploads_dir).list():
        state = "active" if template.is_active else "inactive"
        typer.echo(f"{template.id}\t{template.name}\t{len(template.fields)} field(s)\t{state}")


@app.command("new-request")
def new_request(ctx: typer.Context, template_id: int = typer.Argument(...)) -> None:
    """Start a request for a template."""
    settings = _settings(ctx)
    try:
        TemplateStore(settings.templates_dir, settings.uploads_dir).get(template_id)
        request = RequestStore(settings.requests_dir).create(template_id)
    except StoreError as exc:
        _fail(str(exc))
    typer.echo(f"Created request {request.id} for template {template_id}")


@app.command("set-values")
def set_values(
    ctx: typer.Context,
    request_id: int = typer.Argument(...),
    values: Path = typer.Argument(..., help="JSON object mapping field id to value"),
) -> None:
    """Store submitted field values on a request."""
    store = RequestStore(_settings(ctx).requests_dir)
    payload = _read_json(values)
    if not isinstance(payload, dict):
        _fail("Field values must be a JSON object")
    try:
        request = store.get(request_id)
        actions = request.set_values({str(key): str(value) for key, value in payload.items()})
        store.save(request)
    except (StoreError, RequestStateError, ValueError) as exc:
        _fail(str(exc))
    for field_id, action in actions.items():
        typer.echo(f"{field_id}\t{action}")


@app.command()
def fill(ctx: typer.Context, request_id: int = typer.Argument(...)) -> None:
    """Generate the filled PDF for a request."""
    service = FillService.from_settings(_settings(ctx))
    try:
        target = service.generate(request_id)
    except FillError as exc:
        _fail(str(exc))
    typer.echo(str(target))


@app.command()
def compose(
    template: Path = typer.Argument(..., help="Template JSON file"),
    values: Path = typer.Argument(..., help="JSON object mapping field id to value"),
    output: Path = typer.Argument(..., help="Output PDF"),
    pdf: Optional[Path] = typer.Option(None, "--pdf", help="Override the template's base document"),
) -> None:
    """Fill a template from files, without the stores."""
    payload = _read_json(values)
    if not isinstance(payload, dict):
        _fail("Field values must be a JSON object")
    try:
        definition = Template.from_dict(_read_json(template))
        pdf_bytes = read_document_bytes(pdf or definition.document)
        filled = fill_document(definition, {str(key): str(value) for key, value in payload.items()}, pdf_bytes)
    except (TemplateError, PdfLoadError, FillError) as exc:
        _fail(str(exc))
    output.write_bytes(filled)
    typer.echo(str(output))


@app.command()
def render(
    ctx: typer.Context,
    pdf: Path = typer.Argument(...),
    page: int = typer.Argument(1),
    output: Path = typer.Argument(Path("page.png")),
    zoom: Optional[float] = typer.Option(None, "--zoom", "-z"),
    template: Optional[Path] = typer.Option(None, "--template", help="Draw this template's values"),
    values: Optional[Path] = typer.Option(None, "--values", help="Values JSON used with --template"),
) -> None:
    """Render a page to PNG, optionally previewing filled values."""
    settings = _settings(ctx)
    zoom = zoom or settings.zoom
    try:
        with load_pdf(pdf) as document:
            if template is not None:
                definition = Template.from_dict(_read_json(template))
                filled = _read_json(values) if values is not None else {}
                if not isinstance(filled, dict):
                    _fail("Field values must be a JSON object")
                image = render_fill_preview(document, definition, filled, page, zoom=zoom)
            else:
                image = render_page(document, page, zoom=zoom).image
    except (PdfLoadError, PdfRenderError, TemplateError) as exc:
        _fail(str(exc))
    image.save(output, format="PNG")
    typer.echo(f"{output} ({image.width}x{image.height})")


if __name__ == "__main__":
    app()
