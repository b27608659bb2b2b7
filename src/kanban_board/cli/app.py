import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from kanban_board.cli.board import board_app
from kanban_board.cli.serve import serve_app

app = typer.Typer(
    name="kanban-board",
    help="Kanban board CLI: fetch, lane and move records of a board.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.add_typer(board_app, name="board")
app.add_typer(serve_app, name="serve")


@app.callback()
def _configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def main() -> None:
    app()
