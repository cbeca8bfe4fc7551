"""Import and export of workflow definitions as JSON or YAML files.

File layout::

    version: "1.0"
    workflows:
      - name: ...
        trigger: {event: ..., conditions: [...]}
        steps: [...]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Union

import yaml

from .constants import WORKFLOW_FILE_VERSION
from .contracts import Workflow, WorkflowDefinition
from .exceptions import WorkflowDefinitionError, WorkflowFileError
from .store import coerce_definition

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = {".yaml", ".yml"}


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in _YAML_SUFFIXES


def load_workflow_file(path: Union[str, Path]) -> list[WorkflowDefinition]:
    """Read workflow definitions from ``path``.

    A missing file yields an empty list. Ids and timestamps stored in the
    file are ignored; the engine assigns new ones at registration.

    Raises:
        WorkflowFileError: if the file cannot be parsed or a workflow in it
            is invalid.
    """
    path = Path(path)
    if not path.exists():
        return []

    text = path.read_text(encoding="utf-8")
    try:
        raw = yaml.safe_load(text) if _is_yaml(path) else json.loads(text)
    except (yaml.YAMLError, ValueError) as e:
        raise WorkflowFileError(f"Cannot parse workflow file {path}: {e}") from e

    raw = raw or {}
    if isinstance(raw, list):
        entries = raw
    elif isinstance(raw, dict):
        version = str(raw.get("version", WORKFLOW_FILE_VERSION))
        if version != WORKFLOW_FILE_VERSION:
            logger.warning(f"Workflow file {path} has version {version}, expected {WORKFLOW_FILE_VERSION}")
        entries = raw.get("workflows") or []
    else:
        raise WorkflowFileError(f"Workflow file {path} must contain a mapping or a list")

    definitions = []
    for position, entry in enumerate(entries):
        try:
            definitions.append(coerce_definition(entry))
        except WorkflowDefinitionError as e:
            raise WorkflowFileError(f"Workflow #{position} in {path}: {e}") from e
    return definitions


def save_workflow_file(
    path: Union[str, Path], workflows: Iterable[Union[Workflow, WorkflowDefinition]]
) -> None:
    """Write ``workflows`` to ``path`` as JSON, or YAML for .yaml/.yml."""
    path = Path(path)
    document = {
        "version": WORKFLOW_FILE_VERSION,
        "workflows": [wf.to_wire() for wf in workflows],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    if _is_yaml(path):
        text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    path.write_text(text, encoding="utf-8")
