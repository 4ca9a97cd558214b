"""
storeflow CLI - static checks for workflow definitions.

    storeflow validate myapp.workflows:checkout_workflow
    storeflow show myapp.workflows:checkout_workflow --mermaid

The target is ``module:attribute`` where the attribute is a Workflow or a
zero-argument callable returning one (module-level factories that need
ports can be wrapped in a small function for this purpose).
"""

from __future__ import annotations

import importlib
import sys

import click
from rich.console import Console
from rich.table import Table

from storeflow.core.exceptions import ConfigurationError
from storeflow.core.workflow import Workflow

console = Console()


class OrderedGroup(click.Group):
    """Click Group that lists commands in the order they were added."""

    def list_commands(self, ctx):
        return list(self.commands.keys())


def load_workflow(target: str) -> Workflow:
    """
    Import ``module:attribute`` and return the Workflow it designates.

    Raises:
        click.BadParameter: The target cannot be imported or is not a workflow
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        msg = f"expected MODULE:ATTRIBUTE, got '{target}'"
        raise click.BadParameter(msg)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        msg = f"cannot import '{module_name}': {e}"
        raise click.BadParameter(msg) from e

    obj = getattr(module, attribute, None)
    if obj is None:
        msg = f"'{module_name}' has no attribute '{attribute}'"
        raise click.BadParameter(msg)

    if not isinstance(obj, Workflow) and callable(obj):
        obj = obj()
    if not isinstance(obj, Workflow):
        msg = f"'{target}' is not a Workflow (got {type(obj).__name__})"
        raise click.BadParameter(msg)
    return obj


@click.group(cls=OrderedGroup)
@click.version_option(package_name="storeflow", prog_name="storeflow")
def cli():
    """
    storeflow - compensating workflows for commerce backends.

    \b
    Commands:
      validate    Check a workflow definition before it runs
      show        Print the steps of a workflow
    """


@cli.command(name="validate")
@click.argument("target")
def validate_cmd(target: str):
    """Validate the workflow at TARGET (module:attribute)."""
    workflow = load_workflow(target)
    try:
        workflow.validate()
    except ConfigurationError as e:
        console.print(f"[red]✗ {workflow.name}[/red]: {e}")
        sys.exit(1)

    console.print(f"[green]✓ {workflow.name}[/green]: {len(workflow.steps)} step(s) valid")


@cli.command(name="show")
@click.argument("target")
@click.option("--mermaid", is_flag=True, help="Print a Mermaid flowchart instead of a table")
def show_cmd(target: str, mermaid: bool):
    """Print the steps of the workflow at TARGET (module:attribute)."""
    workflow = load_workflow(target)

    if mermaid:
        click.echo(workflow.to_mermaid())
        return

    table = Table(title=f"Workflow: {workflow.name}")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Compensation")
    table.add_column("Description")
    for position, step in enumerate(workflow.steps, start=1):
        table.add_row(
            str(position),
            step.name,
            "yes" if step.has_compensation else "[yellow]none[/yellow]",
            step.description or "",
        )
    console.print(table)


def main():  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
