"""Deployment outcomes and operator-facing reporting.

This module holds the per-operation OperationOutcome records, the
RunSummary that collects them during a run, and the OutcomeReporter that
renders the summary and derives the process exit code.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .accounts import AccountTarget
from .operations import OperationSpec


EXIT_SUCCESS = 0
EXIT_FAILED_ACCOUNTS = 1
EXIT_CONFIGURATION_ERROR = 2


class OperationStatus(Enum):
    """Status of one operation against one account."""

    SUCCESS = "Success"
    FAILED = "Failed"
    SKIPPED = "Skipped"


@dataclass(frozen=True)
class OperationOutcome:
    """Result of applying one operation to one account."""

    account: AccountTarget
    operation_name: str
    status: OperationStatus
    error_detail: Optional[str] = None
    allowed: bool = False

    @property
    def is_acceptable(self) -> bool:
        """Whether this outcome is compatible with a successful run."""
        if self.status == OperationStatus.SUCCESS:
            return True
        return self.status == OperationStatus.SKIPPED and self.allowed


@dataclass
class RunSummary:
    """Append-only collection of outcomes for one run."""

    accounts: Tuple[AccountTarget, ...] = ()
    operations: Tuple[OperationSpec, ...] = ()
    dry_run: bool = False
    cancelled: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    outcomes: List[OperationOutcome] = field(default_factory=list)

    def record(self, outcome: OperationOutcome) -> None:
        """Append an outcome.

        Raises:
            ValueError: When the outcome names an account or operation
                outside this run, or the summary is finalized
        """
        if self.finished_at is not None:
            raise ValueError("RunSummary is finalized")
        if outcome.account not in self.accounts:
            raise ValueError(f"Account {outcome.account.team_name} is not part of this run")
        if outcome.operation_name not in [op.name for op in self.operations]:
            raise ValueError(f"Operation '{outcome.operation_name}' is not part of this run")
        self.outcomes.append(outcome)

    def finalize(self) -> None:
        if self.finished_at is None:
            self.finished_at = datetime.now(timezone.utc)

    def outcomes_for(self, account: AccountTarget) -> List[OperationOutcome]:
        return [outcome for outcome in self.outcomes if outcome.account == account]

    def count(self, status: OperationStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    def failed_accounts(self) -> List[AccountTarget]:
        return [
            account for account in self.accounts
            if any(not outcome.is_acceptable for outcome in self.outcomes_for(account))
        ]


class OutcomeReporter:
    """Renders a RunSummary for the operator."""

    STATUS_SYMBOLS = {
        OperationStatus.SUCCESS: "✅",
        OperationStatus.FAILED: "❌",
        OperationStatus.SKIPPED: "⏭️",
    }

    def summarize(self, summary: RunSummary) -> str:
        """Render a per-account, per-operation report.

        Accounts are listed in the order of the run's account sequence and
        operations in registry order, regardless of completion order.

        Args:
            summary: Summary to render

        Returns:
            Multi-line report text
        """
        title = "Planned Operations (dry run)" if summary.dry_run else "Deployment Summary"
        lines = ["=" * 60, title, "=" * 60]
        operation_order = {op.name: index for index, op in enumerate(summary.operations)}

        for account in summary.accounts:
            lines.append(f"\n{account.team_name} ({account.account_id})")
            outcomes = sorted(
                summary.outcomes_for(account),
                key=lambda outcome: operation_order.get(outcome.operation_name, len(operation_order)),
            )
            if not outcomes:
                lines.append("   (no outcomes recorded)")
            for outcome in outcomes:
                symbol = self.STATUS_SYMBOLS[outcome.status]
                lines.append(f"   {symbol} {outcome.operation_name}: {outcome.status.value}")
                if outcome.error_detail:
                    lines.append(f"      {outcome.error_detail}")

        lines.append("")
        lines.append("-" * 60)
        lines.append(
            f"Accounts: {len(summary.accounts)}  "
            f"Success: {summary.count(OperationStatus.SUCCESS)}  "
            f"Failed: {summary.count(OperationStatus.FAILED)}  "
            f"Skipped: {summary.count(OperationStatus.SKIPPED)}"
        )
        if summary.cancelled:
            lines.append("⚠️  Run was cancelled before all accounts were processed")

        failed = summary.failed_accounts()
        if failed:
            lines.append(f"❌ Accounts with failures: {', '.join(a.team_name for a in failed)}")
        elif summary.dry_run:
            lines.append("✅ Configuration valid, no changes applied")
        else:
            lines.append("✅ All accounts deployed successfully")

        return "\n".join(lines)

    def exit_code(self, summary: RunSummary) -> int:
        """Derive the process exit code.

        Returns:
            0 when every outcome is Success or an allowed Skipped, 1 otherwise
        """
        if all(outcome.is_acceptable for outcome in summary.outcomes):
            return EXIT_SUCCESS
        return EXIT_FAILED_ACCOUNTS

    def to_dict(self, summary: RunSummary) -> Dict[str, Any]:
        """JSON-serializable form of the summary."""
        return {
            "dry_run": summary.dry_run,
            "cancelled": summary.cancelled,
            "started_at": summary.started_at.isoformat(),
            "finished_at": summary.finished_at.isoformat() if summary.finished_at else None,
            "exit_code": self.exit_code(summary),
            "accounts": [
                {
                    "team_name": account.team_name,
                    "account_id": account.account_id,
                    "operations": [
                        {
                            "name": outcome.operation_name,
                            "status": outcome.status.value,
                            "error_detail": outcome.error_detail,
                        }
                        for outcome in summary.outcomes_for(account)
                    ],
                }
                for account in summary.accounts
            ],
        }
