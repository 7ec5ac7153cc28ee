"""Diagnostic probes, suite runner and error reports."""

from agent_gateway.diagnostics.models import ErrorReport, SuiteConfig, TestResult, TestSuite
from agent_gateway.diagnostics.reports import build_error_report
from agent_gateway.diagnostics.runner import DiagnosticsRunner

__all__ = [
    "DiagnosticsRunner",
    "ErrorReport",
    "SuiteConfig",
    "TestResult",
    "TestSuite",
    "build_error_report",
]
