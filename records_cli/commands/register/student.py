import json
import os
from typing import Any, Dict, Iterable, Optional

import click

from records_cli.context import Services


def parse_assignments(pairs: Iterable[str]) -> Dict[str, str]:
    """
    Parse ``field=value`` pairs given on the command line.

    Raises:
        click.BadParameter: If a pair has no ``=``
    """
    fields: Dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"Expected field=value, got '{pair}'")
        name, value = pair.split("=", 1)
        fields[name.strip()] = value
    return fields


def load_fields_file(file_path: str) -> Dict[str, Any]:
    """Read a JSON object of field values, e.g. exported from a form."""
    if not os.path.exists(file_path):
        raise click.BadParameter(f"File {file_path} not found")
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        raise click.BadParameter(f"Could not read {file_path} as JSON: {e}")
    if not isinstance(data, dict):
        raise click.BadParameter(f"{file_path} must contain a JSON object")
    return data


def register_student(
    services: Services, fields: Dict[str, Any], file_path: Optional[str] = None
) -> str:
    """Register a student in the active academic year."""
    services.require_user()
    year = services.selector.require_active()

    values: Dict[str, Any] = {}
    if file_path:
        values.update(load_fields_file(file_path))
    values.update(fields)

    record_id = services.records.create(year, values)
    click.secho(
        f"Registered {values.get('full_name')} for {year} (id: {record_id})", fg="green"
    )
    return record_id
