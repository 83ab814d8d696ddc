"""Dispatch CLI - metric-driven partition selection."""

import logging

import typer

from dispatch_core.cli.partition import partition_app
from dispatch_core.cli.ports import ports_app

app = typer.Typer(
    name="dispatch",
    help="Metric-driven partition selection for message producers",
    no_args_is_help=True,
)

# Add command groups
app.add_typer(partition_app, name="partition")
app.add_typer(ports_app, name="ports")


@app.callback()
def configure_logging(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log poller activity"),
) -> None:
    """Metric-driven partition selection for message producers."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
