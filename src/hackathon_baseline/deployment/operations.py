"""Baseline operations applied to every team account.

Each operation is a declarative OperationSpec: a CloudFormation template
reference (or a recorder action) plus parameter templates rendered against
the account being deployed. Operations declare their dependencies and the
registry checks it is always presented in a valid topological order.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from ..core.config import ConfigurationError


KIND_STACK = "stack"
KIND_RECORDER = "recorder"

DEPLOY_BUDGET_STACK = "deploy budget stack"
DEPLOY_COMPLIANCE_STACK = "deploy compliance stack"
START_COMPLIANCE_RECORDER = "start compliance recorder"


@dataclass(frozen=True)
class OperationSpec:
    """Declarative description of one baseline operation."""

    name: str
    template_ref: Optional[str]
    parameters: Mapping[str, str]
    idempotent: bool = True
    kind: str = KIND_STACK
    stack_name: Optional[str] = None
    depends_on: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ResolvedOperation:
    """An OperationSpec rendered for one account."""

    spec: OperationSpec
    stack_name: Optional[str]
    parameters: Dict[str, str]

    @property
    def name(self) -> str:
        return self.spec.name

    def describe(self) -> str:
        """Short human-readable description of the planned action."""
        if self.spec.kind == KIND_RECORDER:
            return f"start recorder {self.parameters.get('RecorderName')}"
        return f"deploy stack {self.stack_name} from {self.spec.template_ref}"


def _render(template: str, context: Mapping[str, Any], operation_name: str) -> str:
    try:
        return template.format(**context)
    except KeyError as e:
        raise ConfigurationError(
            f"Operation '{operation_name}' references unknown parameter {e} "
            f"in template '{template}'"
        )


class OperationRegistry:
    """Ordered, validated collection of baseline operations."""

    def __init__(self, operations) -> None:
        """Initialize and validate the registry.

        Args:
            operations: OperationSpec entries in application order

        Raises:
            ConfigurationError: When names repeat, a dependency is unknown or
                a dependency does not precede its dependent
        """
        self._operations: Tuple[OperationSpec, ...] = tuple(operations)
        self._validate()

    def _validate(self) -> None:
        names = [op.name for op in self._operations]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate operation names: {', '.join(duplicates)}")

        known = set(names)
        seen = set()
        for op in self._operations:
            if op.kind not in (KIND_STACK, KIND_RECORDER):
                raise ConfigurationError(f"Operation '{op.name}' has unknown kind '{op.kind}'")
            if op.kind == KIND_STACK and (not op.template_ref or not op.stack_name):
                raise ConfigurationError(
                    f"Stack operation '{op.name}' needs a template_ref and a stack_name"
                )
            for dependency in op.depends_on:
                if dependency not in known:
                    raise ConfigurationError(
                        f"Operation '{op.name}' depends on unknown operation '{dependency}'"
                    )
                if dependency not in seen:
                    raise ConfigurationError(
                        f"Operation '{op.name}' must come after its dependency '{dependency}'"
                    )
            seen.add(op.name)

    def list_operations(self) -> Tuple[OperationSpec, ...]:
        return self._operations

    def __iter__(self):
        return iter(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    @staticmethod
    def resolve(spec: OperationSpec, context: Mapping[str, Any]) -> ResolvedOperation:
        """Render an operation's stack name and parameters for one account.

        Args:
            spec: Operation to render
            context: Values from AccountTarget.template_context()

        Returns:
            ResolvedOperation with concrete values

        Raises:
            ConfigurationError: When a template references an unknown placeholder
        """
        stack_name = _render(spec.stack_name, context, spec.name) if spec.stack_name else None
        parameters = {
            key: _render(value, context, spec.name)
            for key, value in spec.parameters.items()
        }
        return ResolvedOperation(spec=spec, stack_name=stack_name, parameters=parameters)

    def validate_templates(self, templates_dir: Path) -> None:
        """Check every stack operation's template file exists.

        Args:
            templates_dir: Directory template references are relative to

        Raises:
            ConfigurationError: When a template file is missing
        """
        missing = [
            op.template_ref for op in self._operations
            if op.kind == KIND_STACK and not (Path(templates_dir) / op.template_ref).is_file()
        ]
        if missing:
            raise ConfigurationError(
                f"CloudFormation templates not found in {templates_dir}: {', '.join(missing)}"
            )

    @classmethod
    def default(cls) -> "OperationRegistry":
        """Build the hackathon baseline registry.

        The budget and compliance stacks are independent of each other; the
        recorder is created by the compliance stack so starting it must come
        after that stack.
        """
        return cls([
            OperationSpec(
                name=DEPLOY_BUDGET_STACK,
                template_ref="budget/hackathon-budget-alerts.yaml",
                stack_name="{team_name}-budget-alerts",
                parameters={
                    "TeamName": "{team_name}",
                    "MonthlyBudgetLimit": "{budget_limit}",
                    "EventBudgetLimit": "{event_budget_limit}",
                    "CloudTeamEmail": "{cloud_team_email}",
                    "TeamEmail": "{team_email}",
                },
            ),
            OperationSpec(
                name=DEPLOY_COMPLIANCE_STACK,
                template_ref="config-monitoring/aws-config-setup.yaml",
                stack_name="{team_name}-config-monitoring",
                parameters={
                    "TeamName": "{team_name}",
                    "ConfigBucketName": "{team_name}-config-{account_id}-{region}",
                    "CloudTeamEmail": "{cloud_team_email}",
                },
            ),
            OperationSpec(
                name=START_COMPLIANCE_RECORDER,
                template_ref=None,
                kind=KIND_RECORDER,
                parameters={"RecorderName": "{team_name}-config-recorder"},
                depends_on=(DEPLOY_COMPLIANCE_STACK,),
            ),
        ])
