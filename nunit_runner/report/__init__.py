"""Report document model."""

from nunit_runner.report.document import (
    CaseNode,
    MalformedReportError,
    ReportCounters,
    ReportDocument,
    SuiteNode,
)

__all__ = [
    "CaseNode",
    "MalformedReportError",
    "ReportCounters",
    "ReportDocument",
    "SuiteNode",
]
