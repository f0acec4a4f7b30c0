"""Entry point of the ``galadriel-harvester`` command."""

from __future__ import annotations

import typer

from galadriel.apps.cli.commands import relationship
from galadriel.apps.cli.commands.run import run

app = typer.Typer(help="Galadriel Harvester: federates SPIRE Server bundles through the Galadriel hub")

app.command("run")(run)
app.add_typer(relationship.app, name="relationship")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
