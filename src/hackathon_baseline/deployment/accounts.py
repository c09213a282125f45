"""Hackathon team account targets.

This module turns the raw ``accounts`` entries of the configuration file
into validated, immutable AccountTarget values and iterates them in the
order they appear in the file.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..core.config import ConfigurationError, DEFAULT_ASSUME_ROLE_NAME


logger = logging.getLogger(__name__)

DEFAULT_BUDGET_LIMIT = 500
EVENT_BUDGET_MULTIPLIER = 4

REQUIRED_FIELDS = ("teamName", "accountId", "teamEmail")


@dataclass(frozen=True)
class AccountTarget:
    """A team account the baseline is deployed to."""

    team_name: str
    account_id: str
    budget_limit: float
    team_email: str
    assume_role_name: str = DEFAULT_ASSUME_ROLE_NAME

    def template_context(self, cloud_team_email: str, region: str) -> Dict[str, Any]:
        """Build the values operation parameter templates may reference.

        Args:
            cloud_team_email: Cloud team notification address
            region: Region the baseline is deployed to

        Returns:
            Mapping of placeholder name to value
        """
        return {
            "team_name": self.team_name,
            "account_id": self.account_id,
            "budget_limit": _format_amount(self.budget_limit),
            "event_budget_limit": _format_amount(self.budget_limit * EVENT_BUDGET_MULTIPLIER),
            "team_email": self.team_email,
            "cloud_team_email": cloud_team_email,
            "region": region,
        }


def _format_amount(amount: float) -> str:
    # Whole amounts render without a trailing ".0"
    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)


class AccountIterator:
    """Validated, ordered and restartable sequence of AccountTarget.

    All entries are validated when the iterator is built so that a
    malformed source fails before any account is touched. Iteration
    preserves the order of the source and never mutates it.
    """

    def __init__(
        self,
        source: List[Dict[str, Any]],
        default_role_name: str = DEFAULT_ASSUME_ROLE_NAME,
    ) -> None:
        """Initialize and validate the account sequence.

        Args:
            source: Raw account entries from the configuration file
            default_role_name: Role assumed in each account

        Raises:
            ConfigurationError: When an entry is malformed or a team name repeats
        """
        if not isinstance(source, list):
            raise ConfigurationError("Field 'accounts' must be a list")

        self._default_role_name = default_role_name
        self._targets: Tuple[AccountTarget, ...] = self._build_targets(source)
        logger.debug(f"Loaded {len(self._targets)} account targets")

    def _build_targets(self, source: List[Dict[str, Any]]) -> Tuple[AccountTarget, ...]:
        targets = []
        seen_names = set()

        for index, entry in enumerate(source):
            target = self._build_target(index, entry)
            if target.team_name in seen_names:
                raise ConfigurationError(
                    f"Duplicate teamName '{target.team_name}' in accounts[{index}]"
                )
            seen_names.add(target.team_name)
            targets.append(target)

        return tuple(targets)

    def _build_target(self, index: int, entry: Any) -> AccountTarget:
        """Validate one raw entry and build its AccountTarget.

        Args:
            index: Position of the entry, used in error messages
            entry: Raw entry mapping

        Returns:
            Validated AccountTarget

        Raises:
            ConfigurationError: When the entry is malformed
        """
        if not isinstance(entry, dict):
            raise ConfigurationError(f"accounts[{index}] must be a mapping")

        for field in REQUIRED_FIELDS:
            value = entry.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ConfigurationError(
                    f"Required field '{field}' is missing in accounts[{index}]"
                )

        account_id = str(entry["accountId"]).strip()
        if len(account_id) != 12 or not account_id.isdigit():
            raise ConfigurationError(
                f"accounts[{index}].accountId must be a 12-digit AWS account ID, "
                f"got '{account_id}'"
            )

        budget_limit = entry.get("budgetLimit")
        if budget_limit is None:
            budget_limit = DEFAULT_BUDGET_LIMIT
        if isinstance(budget_limit, bool) or not isinstance(budget_limit, (int, float)):
            raise ConfigurationError(
                f"accounts[{index}].budgetLimit must be a number, got {budget_limit!r}"
            )
        if budget_limit <= 0:
            raise ConfigurationError(
                f"accounts[{index}].budgetLimit must be positive, got {budget_limit}"
            )

        return AccountTarget(
            team_name=str(entry["teamName"]).strip(),
            account_id=account_id,
            budget_limit=budget_limit,
            team_email=str(entry["teamEmail"]).strip(),
            assume_role_name=entry.get("assumeRoleName") or self._default_role_name,
        )

    def accounts(self) -> Iterator[AccountTarget]:
        """Iterate account targets in source order.

        Returns:
            A fresh iterator; calling again restarts from the first account
        """
        return iter(self._targets)

    def __iter__(self) -> Iterator[AccountTarget]:
        return self.accounts()

    def __len__(self) -> int:
        return len(self._targets)

    def team_names(self) -> List[str]:
        return [target.team_name for target in self._targets]

    def require_team(self, team_name: Optional[str]) -> None:
        """Check an ``--only`` filter names a configured team.

        Args:
            team_name: Team name to check, None means no filter

        Raises:
            ConfigurationError: When the team is not configured
        """
        if team_name is not None and team_name not in self.team_names():
            raise ConfigurationError(
                f"Unknown team '{team_name}'. Configured teams: {', '.join(self.team_names())}"
            )
