"""Project configuration loading and CLI override precedence.

Reads ``fetchui.yaml``/``fetchui.yml`` (YAML) or ``components.json`` from
the target project and turns it, together with CLI flags and the
environment, into the ``TransformContext`` and registry location used by
the pipeline. Precedence: CLI flags > environment > project config >
defaults. Malformed configuration is logged and the defaults are kept.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from common.logging_utils import extra_context
from constants import Constants
from transform.context import StyleStrategy, TransformContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectConfig:
    """Settings read from the target project's config file."""

    aliases: Mapping[str, str] = field(default_factory=dict)
    style: StyleStrategy = StyleStrategy.COLOCATED
    styles_dir: str = Constants.DEFAULT_STYLES_DIR
    components_dir: str = Constants.DEFAULT_COMPONENTS_DIR
    typescript: bool = True
    class_helper_path: Optional[str] = None
    registry: Optional[str] = None
    source: Optional[str] = None


def _read_config_file(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as fh:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(fh) or {}
        else:
            data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError("top-level value must be a mapping")
    return data


def _str_mapping(value: Any, key: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning("Ignoring config key '%s': expected a mapping", key)
        return {}
    return {str(k): str(v) for k, v in value.items()}


def load_project_config(root: Path) -> ProjectConfig:
    """Load the first config file found in ``root``; defaults when none is present or valid."""
    for filename in Constants.PROJECT_CONFIG_FILES:
        path = Path(root) / filename
        if not path.is_file():
            continue
        try:
            data = _read_config_file(path)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.warning(
                "Ignoring unreadable project config %s: %s",
                path,
                exc,
                extra=extra_context(event="config_load", component="cli_config", outcome="error"),
            )
            return ProjectConfig()

        style = StyleStrategy.COLOCATED
        raw_style = data.get("style")
        if raw_style is not None:
            try:
                style = StyleStrategy(str(raw_style).lower())
            except ValueError:
                logger.warning(
                    "Unknown style strategy '%s' in %s; using %s", raw_style, path, style.value
                )

        tsx = data.get("tsx", True)
        if not isinstance(tsx, bool):
            logger.warning("Ignoring non-boolean 'tsx' in %s", path)
            tsx = True

        config = ProjectConfig(
            aliases=_str_mapping(data.get("aliases"), "aliases"),
            style=style,
            styles_dir=str(data.get("stylesDir") or Constants.DEFAULT_STYLES_DIR),
            components_dir=str(data.get("componentsDir") or Constants.DEFAULT_COMPONENTS_DIR),
            typescript=tsx,
            class_helper_path=data.get("classHelperPath") or None,
            registry=data.get("registry") or None,
            source=str(path),
        )
        logger.info(
            "Loaded project config %s",
            path,
            extra=extra_context(event="config_load", component="cli_config", outcome="success"),
        )
        return config
    return ProjectConfig()


def resolve_registry_location(cli_value: Optional[str], config: ProjectConfig) -> str:
    """Registry URL or directory: CLI flag, then FETCHUI_REGISTRY_URL, then config, then default."""
    return (
        cli_value
        or os.environ.get(Constants.ENV_REGISTRY_URL)
        or config.registry
        or Constants.REGISTRY_URL
    )


def build_transform_context(config: ProjectConfig, components_dir: Optional[str] = None) -> TransformContext:
    """TransformContext for the project; ``components_dir`` (``--to``) overrides the config."""
    return TransformContext(
        alias_map=dict(config.aliases),
        style_strategy=config.style,
        target_dir=(components_dir or config.components_dir).strip("/") or ".",
        typescript=config.typescript,
        styles_dir=config.styles_dir.strip("/"),
        class_helper_path=config.class_helper_path,
    )
