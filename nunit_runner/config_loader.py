"""Load run configurations from YAML (or legacy XML) files."""

import asyncio
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from nunit_runner.models.configuration import RunConfiguration


async def load_run_configuration(path: Path) -> RunConfiguration:
    """Load and validate a run configuration file.

    Files ending in ``.xml`` are read in the legacy XML layout, everything
    else as YAML.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty, unparseable or fails validation

    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    content = await asyncio.to_thread(path.read_text, encoding="utf-8")
    if not content.strip():
        raise ValueError(f"Empty configuration file: {path}")

    if path.suffix.lower() == ".xml":
        data = parse_xml_configuration(content, path)
    else:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty configuration file: {path}")

    try:
        return RunConfiguration.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid run configuration schema in {path}: {e}") from e


def parse_xml_configuration(content: str, path: Path) -> dict[str, Any]:
    """Convert the legacy XML layout into configuration data.

    ``<MaxParallelRuns>`` and ``<RetryFailedTests>`` may appear anywhere below
    the root; each ``<Test>`` has a ``<Name>``, an optional ``<Fixture>`` and
    optional ``<Categories>`` with ``<Category>`` children.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise ValueError(f"Invalid XML in {path}: {e}") from e

    data: dict[str, Any] = {"tests": []}

    if (max_parallel := _text(root.find(".//MaxParallelRuns"))) is not None:
        data["max_parallel_runs"] = max_parallel
    if (retry := _text(root.find(".//RetryFailedTests"))) is not None:
        data["retry_failed_tests"] = retry.lower()

    for test in root.iter("Test"):
        categories = test.find(".//Categories")
        data["tests"].append(
            {
                "name": _text(test.find(".//Name")),
                "fixture": _text(test.find(".//Fixture")) or None,
                "categories": []
                if categories is None
                else [_text(c) for c in categories.iter("Category")],
            }
        )

    return data


def _text(node: ET.Element | None) -> str | None:
    if node is None:
        return None
    return (node.text or "").strip()
