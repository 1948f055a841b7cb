"""Export the gateway's environment variables as JSON.

Writes one entry per settings class with every variable's name, type,
default and description, for use in operator documentation.

Usage:
    python scripts/export_settings.py [output_path]
"""

import json
import sys
from pathlib import Path
from typing import Any

from pydantic import SecretStr
from pydantic_core import PydanticUndefined
from pydantic_settings import BaseSettings

root_path = Path(__file__).parent.parent
sys.path.insert(0, str(root_path / "src" / "gateway"))

from infrastructure.settings import (  # noqa: E402
    ConsumerSettings,
    DatabaseSettings,
    DeliverySinkSettings,
    IdempotencySettings,
    OutboxSettings,
    RetrySettings,
    Settings,
)


def _display_default(default: Any, is_required: bool) -> Any:
    if isinstance(default, SecretStr):
        return None if is_required else "********"
    if is_required or default is None:
        return None
    if isinstance(default, (bool, int, float)):
        return default
    return str(default)


def get_model_metadata(settings_class: type[BaseSettings]) -> dict[str, Any]:
    prefix = settings_class.model_config.get("env_prefix", "")
    variables = []

    for name, field in settings_class.model_fields.items():
        type_name = getattr(field.annotation, "__name__", str(field.annotation))
        default = field.get_default()

        # Secrets defaulting to "" must be supplied in production.
        is_required = default is PydanticUndefined or (
            isinstance(default, SecretStr) and default.get_secret_value() == ""
        )

        variables.append(
            {
                "env_var": f"{prefix}{name.upper()}",
                "type": "Secret" if "Secret" in type_name else type_name,
                "default": _display_default(default, is_required),
                "required": is_required,
                "description": field.description or "",
            }
        )

    return {
        "class_name": settings_class.__name__,
        "prefix": prefix,
        "doc": (settings_class.__doc__ or "").strip().splitlines()[0],
        "variables": variables,
    }


def export_settings(output_path: Path) -> None:
    classes: list[type[BaseSettings]] = [
        Settings,
        DatabaseSettings,
        OutboxSettings,
        RetrySettings,
        ConsumerSettings,
        IdempotencySettings,
        DeliverySinkSettings,
    ]

    data = {cls.__name__: get_model_metadata(cls) for cls in classes}

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2)

    print(f"Exported settings to {output_path}")


if __name__ == "__main__":
    default_path = root_path / "docs" / "env-vars.json"
    export_settings(Path(sys.argv[1]) if len(sys.argv) > 1 else default_path)
