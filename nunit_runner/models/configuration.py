"""Models for run configurations and the work items expanded from them."""

from collections.abc import Sequence

from pydantic import Field, field_validator

from nunit_runner.models.base import Model

UNBOUNDED = -1


def normalize_max_parallel(value: int) -> int:
    """Normalize a configured degree of parallelism.

    ``-1`` means unbounded and is kept as is, ``0`` becomes ``1`` (serial).

    Raises:
        ValueError: If the value is below ``-1``

    """
    if value < UNBOUNDED:
        raise ValueError(f"max_parallel_runs must be -1 or greater, got {value}")
    return 1 if value == 0 else value


class WorkItem(Model):
    """One schedulable invocation of the test console."""

    id: int = Field(..., description="Unique, monotonically assigned identifier")
    name: str = Field(..., description="Logical test name shared by split runs")
    output_name: str = Field(
        ..., description="Basename of the report and log files, unique per run"
    )
    category: str | None = Field(default=None, description="Category filter")
    fixture: str | None = Field(default=None, description="Fixture filter")


class TestSpec(Model):
    """A configured test, optionally split across categories."""

    __test__ = False

    name: str = Field(..., min_length=1, description="Logical test name")
    fixture: str | None = Field(default=None, description="Fixture to run")
    categories: Sequence[str] = Field(
        default_factory=list,
        description="Categories to run separately (empty means no filter)",
    )


class RunConfiguration(Model):
    """Complete run configuration loaded from the configuration file."""

    max_parallel_runs: int = Field(
        default=1, description="Concurrent console runs (-1 means unbounded)"
    )
    retry_failed_tests: bool = Field(
        default=False, description="Rerun failed test cases once after dispatch"
    )
    tests: Sequence[TestSpec] = Field(default_factory=list)

    @field_validator("max_parallel_runs")
    @classmethod
    def _normalize_max_parallel(cls, value: int) -> int:
        return normalize_max_parallel(value)

    def to_work_items(self) -> Sequence[WorkItem]:
        """Expand configured tests into work items (one per category).

        A test without categories yields a single unfiltered item. Output
        names are made unique in first-seen order by suffixing ``_2``, ``_3``
        and so on.
        """
        items: list[WorkItem] = []
        used_names: set[str] = set()

        for test in self.tests:
            categories: list[str | None] = (
                list(test.categories) if test.categories else [None]
            )
            for category in categories:
                output_name = unique_output_name(test.name, used_names)
                used_names.add(output_name)
                items.append(
                    WorkItem(
                        id=len(items),
                        name=test.name,
                        output_name=output_name,
                        category=category,
                        fixture=test.fixture or None,
                    )
                )
        return items


def unique_output_name(name: str, used_names: set[str]) -> str:
    """Return ``name`` or the first free ``name_<n>`` (n >= 2)."""
    candidate = name
    suffix = 1
    while candidate in used_names:
        suffix += 1
        candidate = f"{name}_{suffix}"
    return candidate
