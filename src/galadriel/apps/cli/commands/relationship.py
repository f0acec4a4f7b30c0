"""``galadriel-harvester relationship``: consent management through the running harvester."""

from __future__ import annotations

import uuid
from typing import Any, Optional

import httpx
import typer

from galadriel.config.const import DEFAULT_ADMIN_SOCKET_PATH
from galadriel.services.hub import ConsentStatus, Relationship

app = typer.Typer(help="Manage relationships of the trust domain this harvester runs alongside")

# host part is ignored on a UNIX socket
_BASE_URL = "http://localhost"
_TIMEOUT = 30.0


def _transport(socket_path: str) -> httpx.BaseTransport:
    return httpx.HTTPTransport(uds=socket_path)


def _request(socket_path: str, method: str, path: str, **kwargs: Any) -> Any:
    try:
        with httpx.Client(transport=_transport(socket_path), base_url=_BASE_URL, timeout=_TIMEOUT) as client:
            response = client.request(method, path, **kwargs)
    except httpx.HTTPError as exc:
        typer.secho(f"failed to reach the harvester on {socket_path}: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1) from exc

    if response.status_code != 200:
        detail: Any = response.text
        try:
            detail = response.json().get("detail", detail)
        except (ValueError, AttributeError):
            pass
        typer.secho(f"request failed ({response.status_code}): {detail}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)
    return response.json()


def _update(socket_path: str, relationship_id: str, status: ConsentStatus) -> Relationship:
    try:
        rel_id = uuid.UUID(relationship_id)
    except ValueError as exc:
        raise typer.BadParameter(f"cannot parse relationship ID: {relationship_id}") from exc
    payload = _request(socket_path, "PATCH", f"/relationships/{rel_id}", json={"consent_status": status.value})
    return Relationship.from_json(payload)


@app.command("list")
def cmd_list(
    status: Optional[ConsentStatus] = typer.Option(None, "--status", "-s", help="Filter by consent status"),
    socket_path: str = typer.Option(DEFAULT_ADMIN_SOCKET_PATH, "--socket-path", help="Harvester admin API socket"),
):
    """List relationships for this trust domain."""
    params = {"consentStatus": status.value} if status else None
    payload = _request(socket_path, "GET", "/relationships", params=params)
    relationships = [Relationship.from_json(item) for item in payload or []]
    if not relationships:
        typer.echo("No relationships found")
        return
    typer.echo()
    for rel in relationships:
        typer.echo(rel.console_string())
        typer.echo()


@app.command("approve")
def cmd_approve(
    relationship_id: str = typer.Option(..., "--id", "--relationshipID", help="Relationship ID"),
    socket_path: str = typer.Option(DEFAULT_ADMIN_SOCKET_PATH, "--socket-path", help="Harvester admin API socket"),
):
    """Approve a pending relationship."""
    rel = _update(socket_path, relationship_id, ConsentStatus.APPROVED)
    typer.echo("Successfully approved relationship.\n")
    typer.echo(rel.console_string())


@app.command("deny")
def cmd_deny(
    relationship_id: str = typer.Option(..., "--id", "--relationshipID", help="Relationship ID"),
    socket_path: str = typer.Option(DEFAULT_ADMIN_SOCKET_PATH, "--socket-path", help="Harvester admin API socket"),
):
    """Deny a relationship."""
    rel = _update(socket_path, relationship_id, ConsentStatus.DENIED)
    typer.echo("Successfully denied relationship.\n")
    typer.echo(rel.console_string())
