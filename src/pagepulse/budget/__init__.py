"""
Performance budget enforcement.

Validates enriched metrics against configured thresholds, records
violations in a rolling log, escalates by severity and reports budget
health.
"""

from .actions import CorrectiveAction, CorrectiveActionRegistry
from .alerts import AlertSink, HttpAlertSink, LoggingAlertSink
from .models import Alert, AlertType, Severity, Violation, classify_severity
from .report import BudgetReport, budget_health, build_report
from .validator import BudgetValidator, ValidatorStats

__all__ = [
    "Alert",
    "AlertSink",
    "AlertType",
    "BudgetReport",
    "BudgetValidator",
    "CorrectiveAction",
    "CorrectiveActionRegistry",
    "HttpAlertSink",
    "LoggingAlertSink",
    "Severity",
    "ValidatorStats",
    "Violation",
    "budget_health",
    "build_report",
    "classify_severity",
]
