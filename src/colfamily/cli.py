"""Developer CLI for inspecting synthesized finders.

Loads a RecordSchema from an importable module and prints the finder and
boolean-scope methods it exposes.
"""

import importlib
import sys

import structlog
import typer

from colfamily.schema import RecordSchema

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    logger_factory=lambda name: structlog.PrintLogger(file=sys.stderr),
    wrapper_class=structlog.BoundLogger,
    context_class=dict,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="colfamily",
    help="""Inspect the finder methods synthesized for column-family record schemas.

Examples:

  # List the finders of a schema defined in myapp/schemas.py
  uv run colfamily finders myapp.schemas:POST_SCHEMA""",
    rich_markup_mode="markdown",
)


def load_schema(target: str) -> RecordSchema:
    """Import ``module:attribute`` and return the RecordSchema it names.

    Raises:
        ValueError: If the target is malformed or does not name a RecordSchema.
        ImportError: If the module cannot be imported.
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"expected MODULE:ATTRIBUTE, got {target!r}")

    module = importlib.import_module(module_name)
    schema = getattr(module, attribute, None)
    if not isinstance(schema, RecordSchema):
        raise ValueError(f"{target} is not a RecordSchema")
    return schema


@app.command()
def finders(
    target: str = typer.Argument(
        ...,
        help="Schema to inspect, as MODULE:ATTRIBUTE",
    ),
) -> None:
    """List the finder and boolean-scope methods of a schema."""
    try:
        schema = load_schema(target).finalize()
    except (ImportError, ValueError) as e:
        logger.error("schema_load_failed", target=target, error=str(e))
        raise typer.Exit(1) from e

    typer.echo(f"{schema.table_name}: key ({', '.join(c.name for c in schema.key_columns)})")
    for method_name, entry in schema.finders.items():
        typer.echo(f"  {method_name}  [{entry.kind.value}, {entry.source.value}] ({', '.join(entry.column_names)})")
    for method_name, scope in schema.boolean_scopes.items():
        value = "true" if method_name == scope.positive_method else "false"
        typer.echo(f"  {method_name}  [scope_lazy, boolean] ({scope.column_name} = {value})")


@app.command()
def version() -> None:
    """Show version information."""
    from colfamily import __version__

    typer.echo(f"colfamily {__version__}")
