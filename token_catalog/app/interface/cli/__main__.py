import asyncio
import inspect
import logging
from typing import Optional

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from token_catalog.app.interface.tasks import TASKS


load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

app = typer.Typer()
catalog_app = typer.Typer(help="cli for maintaining the token catalog.")
app.add_typer(catalog_app, name="catalog")


@catalog_app.command("run")
def run(
    task_name: Optional[str] = typer.Option(None, "--task", help="Task to run (prompted when omitted)."),
    path: Optional[str] = typer.Option(None, "--path", help="JSON-lines input file (prompted when omitted)."),
    backend: str = typer.Option("sqlalchemy", "--backend"),
) -> None:
    if task_name is None:
        task_name = inquirer.select(
            message="Select task:",
            choices=list(TASKS.keys()),
            pointer="❯",
            instruction="Use ↑/↓ to move, Enter to select",
        ).execute()
    if task_name not in TASKS:
        raise typer.BadParameter(f"Unknown task {task_name!r}", param_hint="--task")

    task = TASKS[task_name]

    kwargs: dict[str, object] = {"backend": backend}

    params = inspect.signature(task).parameters

    if "path" in params:
        if path is None:
            path = inquirer.filepath(
                message="Input file (JSON lines):",
                validate=lambda p: bool(p.strip()),
                invalid_message="Input file is required",
            ).execute()
        kwargs["path"] = path

    asyncio.run(task(**kwargs))  # type: ignore


if __name__ == "__main__":
    typer.echo("--- Token Catalog CLI ---")
    app()
