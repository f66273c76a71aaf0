"""
Workflow configuration.

Settings come from three places, later sources winning:
- built-in defaults
- the key/value ``Config`` tab of the spreadsheet
- process environment (``.env`` is loaded by the entry points)

The result is an immutable ``WorkflowConfig`` loaded once per batch and passed
explicitly to every component.
"""

import os
import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Mapping, Optional, Sequence

from errors import ConfigurationError

DEFAULT_OUTPUT_FOLDER_NAME = "Generated_Certificates"
DEFAULT_QR_SERVICE_URL = "https://quickchart.io/chart"
TEMPLATE_PLACEHOLDER = "PASTE_TEMPLATE_ID_HERE"

# Config key -> WorkflowConfig attribute
CONFIG_KEYS = {
    "TEMPLATE_SLIDE_ID": "template_id",
    "OUTPUT_FOLDER_ID": "output_folder_id",
    "OUTPUT_FOLDER_NAME": "output_folder_name",
    "WEB_APP_URL": "web_app_url",
    "QR_SIZE": "qr_size",
    "QR_SERVICE_URL": "qr_service_url",
    "THROTTLE_SECONDS": "throttle_seconds",
}


@dataclass(frozen=True)
class WorkflowConfig:
    template_id: str = ""
    output_folder_id: str = ""
    output_folder_name: str = DEFAULT_OUTPUT_FOLDER_NAME
    web_app_url: str = ""
    qr_size: int = 300
    qr_service_url: str = DEFAULT_QR_SERVICE_URL
    throttle_seconds: float = 0.5

    @property
    def has_template(self) -> bool:
        return not is_placeholder(self.template_id)

    def require_template(self) -> str:
        """
        Return the template identifier or fail.

        Raises:
            ConfigurationError: If the identifier is empty or still a placeholder
        """
        if not self.has_template:
            raise ConfigurationError(
                "TEMPLATE_SLIDE_ID is not configured. Set it in the Config sheet or environment."
            )
        return self.template_id.strip()


def is_placeholder(value: Optional[str]) -> bool:
    """True for empty values and unfilled placeholders like ``<id>`` or ``{{id}}``."""
    value = (value or "").strip()
    if not value or value == TEMPLATE_PLACEHOLDER:
        return True
    if value.startswith("<") and value.endswith(">"):
        return True
    return value.startswith("{{") and value.endswith("}}")


def parse_config_rows(rows: Iterable[Sequence[str]]) -> Dict[str, str]:
    """
    Turn the two-column Config tab into a mapping.

    Blank keys are ignored; duplicate keys are last-write-wins.

    Args:
        rows: Rows of the Config tab, header row included or not

    Returns:
        Mapping of setting name to string value
    """
    settings = {}
    for row in rows:
        if not row:
            continue
        key = str(row[0]).strip()
        if not key or key.lower() == "key":
            continue
        value = str(row[1]).strip() if len(row) > 1 and row[1] is not None else ""
        settings[key] = value
    return settings


def _coerce(attr: str, raw: str):
    if attr == "qr_size":
        return int(raw)
    if attr == "throttle_seconds":
        return float(raw)
    return raw


def build_config(*sources: Mapping[str, str]) -> WorkflowConfig:
    """
    Build a ``WorkflowConfig`` from one or more setting mappings.

    Empty values (and an unfilled template placeholder) never override earlier
    sources, so a blank optional key falls back to its default.

    Raises:
        ConfigurationError: If a numeric setting cannot be parsed
    """
    config = WorkflowConfig()
    for source in sources:
        overrides = {}
        for key, attr in CONFIG_KEYS.items():
            raw = source.get(key)
            if raw is None or str(raw).strip() == "":
                continue
            if attr == "template_id" and is_placeholder(raw):
                continue
            try:
                overrides[attr] = _coerce(attr, str(raw).strip())
            except ValueError:
                raise ConfigurationError(f"Invalid value for {key}: {raw!r}")
        if overrides:
            config = replace(config, **overrides)
    return config


def load_config(config_rows: Optional[Iterable[Sequence[str]]] = None,
                environ: Optional[Mapping[str, str]] = None) -> WorkflowConfig:
    """
    Load the configuration for one batch run.

    Args:
        config_rows: Rows read from the Config tab, if the row store has one
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Immutable workflow configuration
    """
    sheet_settings = parse_config_rows(config_rows or [])
    env = os.environ if environ is None else environ
    config = build_config(sheet_settings, env)
    logging.info(
        f"Loaded configuration: template={'set' if config.has_template else 'missing'}, "
        f"folder={config.output_folder_id or config.output_folder_name}, "
        f"web_app_url={'set' if config.web_app_url else 'unset'}"
    )
    return config
