"""CLI for project-entities."""

import builtins
import dataclasses
import sys
from pathlib import Path
from typing import Annotated, Any, Literal, get_args, get_type_hints

import structlog
import yaml
from cyclopts import App, Parameter

from project_entities.approval_commands import approval_app
from project_entities.config import ProjectSettings, get_config
from project_entities.config_commands import config_app
from project_entities.errors import EntityStoreError
from project_entities.quality_commands import quality_app
from project_entities.models import ListFilter, from_dict, to_dict
from project_entities.project import Project

logger = structlog.get_logger()

app = App(
    help="pe - typed project entities stored as YAML files",
)

app.command(approval_app)
app.command(config_app)
app.command(quality_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_project(root: Path | None = None) -> Project:
    """Build the project for the current directory from its configuration."""
    root = root or Path.cwd()
    settings = ProjectSettings.from_config(get_config(project_root=root))
    return Project(root, settings)


def _convert(hint: Any, raw: str) -> Any:
    """Turn a command-line string into a value for a patch field."""
    args = [a for a in get_args(hint) if a is not type(None)] or [hint]
    target = args[0]
    if target is bool:
        return raw.strip().lower() in ("true", "yes", "1", "on")
    if target is int:
        return int(raw)
    if target is float:
        return float(raw)
    if getattr(target, "__origin__", None) is builtins.list:
        items = [item.strip() for item in raw.split(";") if item.strip()]
        item_type = (get_args(target) or (str,))[0]
        if dataclasses.is_dataclass(item_type):
            return [_parse_record(item_type, item) for item in items]
        return items
    return raw


def _parse_record(record_class: type, raw: str) -> dict[str, Any]:
    """Parse ``key:value|key:value`` into the fields of a nested record."""
    hints = get_type_hints(record_class)
    values: dict[str, Any] = {}
    for part in raw.split("|"):
        if ":" not in part:
            raise ValueError(f"Invalid item {part!r}, expected key:value")
        key, value = part.split(":", 1)
        key = key.strip()
        if key not in hints:
            raise ValueError(f"Unknown field {key!r} for {record_class.__name__}")
        values[key] = _convert(hints[key], value.strip())
    return values


def parse_fields(patch_class: type, fields: str) -> Any:
    """Parse ``key=value,key=value`` into a patch.

    List values are separated by ``;``. Items of nested record lists, such as
    quality metrics, are written as ``key:value`` pairs separated by ``|``.
    """
    hints = get_type_hints(patch_class)
    values: dict[str, Any] = {}
    for item in fields.split(","):
        if not item.strip():
            continue
        if "=" not in item:
            raise ValueError(f"Invalid field {item!r}, expected key=value")
        key, raw = item.split("=", 1)
        key = key.strip()
        if key not in hints:
            raise ValueError(f"Unknown field {key!r} for {patch_class.__name__}")
        values[key] = _convert(hints[key], raw.strip())
    return from_dict(patch_class, values)


@app.command
def init() -> None:
    """Create the entity store in the current directory."""
    store = get_project().init()
    print(f"Initialized entity store at {store}")


@app.command
def add(entity_type: str, title: str, fields: str = "") -> None:
    """Add an entity.

    Args:
        entity_type: Entity type, e.g. objective, risk, task
        title: Entity title
        fields: Extra fields as key=value pairs separated by commas
    """
    project = get_project()
    patch = parse_fields(project.handler(entity_type).patch_class, fields) if fields else None
    result = project.add(entity_type, title, patch)
    if result.needs_approval:
        print(f"Queued {entity_type} '{title}' for approval: {result.approval_id}")
    else:
        print(f"Created {result.entity} {result.id}")


@app.command
def get(entity_type: str, entity_id: str) -> None:
    """Show an entity as YAML."""
    entity = get_project().get(entity_type, entity_id)
    print(yaml.safe_dump(to_dict(entity), default_flow_style=False, sort_keys=False, allow_unicode=True), end="")


@app.command
def update(entity_type: str, entity_id: str, fields: str) -> None:
    """Update an entity.

    Args:
        entity_type: Entity type
        entity_id: Entity ID
        fields: Fields to change as key=value pairs separated by commas
    """
    project = get_project()
    patch = parse_fields(project.handler(entity_type).patch_class, fields)
    entity = project.update(entity_type, entity_id, patch)
    print(f"Updated {entity_type} {entity.id}")


@app.command
def delete(entity_type: str, *entity_ids: str) -> None:
    """Delete one or more entities."""
    project = get_project()
    for entity_id in entity_ids:
        project.delete(entity_type, entity_id)
    print(f"Deleted {len(entity_ids)} {entity_type}(s)")


@app.command
def list(
    entity_type: str,
    status: str | None = None,
    limit: int = 0,
    offset: int = 0,
) -> None:
    """List entities of a type with optional status filter and pagination."""
    result = get_project().list(entity_type, ListFilter(status=status, limit=limit, offset=offset))

    print(f"Found {result.total} {entity_type}(s):\n")
    for item in result.items:
        status_value = getattr(item, "status", None)
        marker = f" ({status_value.value})" if status_value is not None else ""
        print(f"  {item.id}: {item.title}{marker}")


@app.command
def lint(fix: bool = False) -> None:
    """Check stored files for format problems and drifted derived fields."""
    result = get_project().lint(fix=fix)
    for error in result.errors:
        print(f"ERROR   {error}")
    for warning in result.warnings:
        print(f"WARNING {warning}")
    print(f"\n{len(result.errors)} error(s), {len(result.warnings)} warning(s)")
    if not result.valid:
        sys.exit(1)


@app.command
def check() -> None:
    """Check references between entities for dangling IDs and cycles."""
    result = get_project().check_integrity()
    for issue in result.reference_errors:
        print(f"ERROR   {issue}")
    for cycle in result.cycle_errors:
        print(f"ERROR   {cycle}")
    for warning in result.warnings:
        print(f"WARNING {warning}")
    if result.valid:
        print("No integrity errors")
    else:
        sys.exit(1)


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    try:
        app(tokens)
    except (EntityStoreError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def run() -> None:
    app.meta()


if __name__ == "__main__":
    run()
