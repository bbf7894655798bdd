from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import uvicorn
import yaml

from metapage import __version__
from metapage.config import get_settings
from metapage.context import conn_code_var
from metapage.integrations.data_service import DataServiceClient
from metapage.page_engine.events import DomainEvent
from metapage.page_engine.runtime import PageRuntime
from metapage.page_engine.schemas.page import PageMetadata
from metapage.page_engine.services.action_engine import RunResult, RunStatus

app = typer.Typer(add_completion=False, help="metapage CLI")


@app.command()
def start(
    host: Optional[str] = typer.Option(None, help="Bind host"),
    port: Optional[int] = typer.Option(None, help="Bind port"),
    reload: bool = typer.Option(False, help="Auto-reload on changes (dev)"),
) -> None:
    settings = get_settings()
    uvicorn.run(
        "metapage.api.app:app",
        host=host or settings.HOST,
        port=port or settings.PORT,
        reload=reload,
    )


@app.command()
def version() -> None:
    typer.echo(__version__)


def _load_metadata(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text) or {}
    return json.loads(text)


def _echo_event(event: DomainEvent) -> None:
    typer.echo(json.dumps(event.model_dump(mode="json", exclude={"event_id", "timestamp"})))


async def _run_action(
    runtime: PageRuntime,
    prj_id: str,
    form_id: int,
    metadata: PageMetadata,
    action_name: str,
    debug: bool = False,
) -> RunResult:
    # the init action runs unstepped so the stepped action starts on a prepared page
    runtime.debugger.set_enabled(False)
    await runtime.open_page(prj_id, form_id, metadata)
    runtime.debugger.set_enabled(debug)
    result = await runtime.run_action(prj_id, form_id, action_name)
    # drive the debugger one step at a time until the session ends
    session = runtime.debugger.session
    while session is not None and not session.is_completed:
        result = await runtime.debugger.step_one()
        session = runtime.debugger.session
    return result


@app.command("run-action")
def run_action(
    metadata_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Page metadata (.json/.yaml)"),
    action_name: str = typer.Argument(..., help="Action objectName"),
    prj: str = typer.Option("local", "--prj", help="Project id"),
    form: int = typer.Option(1, "--form", help="Form id"),
    conn_code: Optional[str] = typer.Option(None, "--conn-code", help="Connection code"),
    debug: bool = typer.Option(False, "--debug", help="Step through the action"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Root log level"),
) -> None:
    """Run one action of a page described by a metadata file and print the events."""
    logging.basicConfig(level=log_level.upper())
    if conn_code is not None:
        conn_code_var.set(conn_code)

    metadata = PageMetadata.model_validate(_load_metadata(metadata_file))
    runtime = PageRuntime(DataServiceClient())
    runtime.bus.subscribe(DomainEvent, _echo_event)

    result = asyncio.run(_run_action(runtime, prj, form, metadata, action_name, debug))
    typer.echo(json.dumps(result.to_dict()))
    if result.status in (RunStatus.NOT_FOUND, RunStatus.ABORTED):
        raise typer.Exit(code=1)


def main() -> None:
    app()
