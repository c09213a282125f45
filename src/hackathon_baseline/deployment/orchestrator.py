"""Cross-account baseline deployment orchestration.

This module provides the DeploymentOrchestrator class which processes
team accounts strictly one after another: assume a role into the account,
apply every registry operation with that credential, record one outcome
per operation and drop the credential before moving on. A failure in one
account never stops the others.
"""

import logging
import threading
import time
from typing import Callable, Iterable, List, Optional

from ..core.errors import AuthorizationError, BaselineError, ExternalServiceError, TransientError
from .accounts import AccountTarget
from .control_plane import ApplyResult, RecorderResult
from .credentials import CredentialBroker, ScopedCredential
from .operations import KIND_RECORDER, OperationRegistry, OperationSpec, ResolvedOperation
from .reporter import OperationOutcome, OperationStatus, RunSummary


logger = logging.getLogger(__name__)

# Error codes meaning the recorder was already running when we tried to start it
RECORDER_ALREADY_RUNNING_CODES = frozenset({
    "ConfigurationRecorderAlreadyRunning",
    "RecorderAlreadyRunningException",
})

SUCCESS_APPLY_RESULTS = (ApplyResult.CREATED, ApplyResult.UPDATED, ApplyResult.UNCHANGED)
SUCCESS_RECORDER_RESULTS = (RecorderResult.STARTED, RecorderResult.ALREADY_RUNNING)


class DeploymentOrchestrator:
    """Orchestrates baseline deployment across team accounts.

    Accounts are processed sequentially. Cancellation is cooperative and is
    only honoured between accounts so no account is left half deployed.
    """

    # Retries after the first attempt for TransientError
    DEFAULT_MAX_RETRIES = 2
    DEFAULT_RETRY_BACKOFF_SECONDS = 2.0

    def __init__(
        self,
        broker: CredentialBroker,
        control_plane,
        registry: OperationRegistry,
        region: str,
        cloud_team_email: str,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF_SECONDS,
        account_delay: float = 0.0,
        skip_on_failed_dependency: bool = False,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the deployment orchestrator.

        Args:
            broker: Credential broker for member accounts
            control_plane: Client exposing apply_declarative_infra and start_recorder
            registry: Operations to apply to each account
            region: Region the baseline is deployed to
            cloud_team_email: Cloud team address passed to parameter templates
            max_retries: Additional attempts after a TransientError
            retry_backoff: Fixed pause between attempts in seconds
            account_delay: Pause between accounts in seconds
            skip_on_failed_dependency: Skip an operation whose dependency failed
                instead of attempting it
            cancel_event: Event that requests cancellation between accounts
            sleep: Sleep function, replaceable in tests
        """
        self.broker = broker
        self.control_plane = control_plane
        self.registry = registry
        self.region = region
        self.cloud_team_email = cloud_team_email
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.account_delay = account_delay
        self.skip_on_failed_dependency = skip_on_failed_dependency
        self.cancel_event = cancel_event or threading.Event()
        self._sleep = sleep

    def cancel(self) -> None:
        """Request cancellation after the current account completes."""
        self.cancel_event.set()

    def run(
        self,
        accounts: Iterable[AccountTarget],
        operations: Optional[Iterable[OperationSpec]] = None,
        only: Optional[str] = None,
        dry_run: bool = False,
    ) -> RunSummary:
        """Deploy the baseline to every account.

        Args:
            accounts: Ordered account targets
            operations: Operations to apply (default: the registry's)
            only: Restrict deployment to this team name; others are skipped
            dry_run: Plan only, make no control-plane calls

        Returns:
            RunSummary with one outcome per account and operation
        """
        account_list = tuple(accounts)
        if operations is None:
            operation_list = self.registry.list_operations()
        else:
            operation_list = OperationRegistry(operations).list_operations()

        self._validate_plan(account_list, operation_list)

        summary = RunSummary(accounts=account_list, operations=operation_list, dry_run=dry_run)
        mode = "Planning" if dry_run else "Deploying"
        logger.info(
            f"{mode} {len(operation_list)} operations across {len(account_list)} accounts"
        )

        for index, account in enumerate(account_list):
            if self.cancel_event.is_set():
                if not summary.cancelled:
                    logger.warning("Cancellation requested, skipping remaining accounts")
                summary.cancelled = True
                self._record_all(summary, account, operation_list, OperationStatus.SKIPPED, "run cancelled")
                continue

            if only is not None and account.team_name != only:
                self._record_all(
                    summary, account, operation_list, OperationStatus.SKIPPED,
                    f"not selected (--only {only})", allowed=True,
                )
                continue

            logger.info("=" * 45)
            logger.info(f"Processing account: {account.team_name} ({account.account_id})")
            logger.info("=" * 45)

            if dry_run:
                self._plan_account(summary, account, operation_list)
                continue

            self._process_account(summary, account, operation_list)

            if self.account_delay and index < len(account_list) - 1:
                self._sleep(self.account_delay)

        summary.finalize()
        return summary

    def _validate_plan(self, accounts: Iterable[AccountTarget],
                       operations: Iterable[OperationSpec]) -> None:
        """Render every operation for every account before touching any.

        Raises:
            ConfigurationError: When a parameter template cannot be rendered
        """
        for account in accounts:
            context = account.template_context(self.cloud_team_email, self.region)
            for spec in operations:
                OperationRegistry.resolve(spec, context)

    def _plan_account(self, summary: RunSummary, account: AccountTarget,
                      operations: Iterable[OperationSpec]) -> None:
        context = account.template_context(self.cloud_team_email, self.region)
        for spec in operations:
            resolved = OperationRegistry.resolve(spec, context)
            logger.info(f"[dry-run] {account.team_name}: {resolved.describe()}")
            summary.record(OperationOutcome(
                account=account,
                operation_name=spec.name,
                status=OperationStatus.SKIPPED,
                error_detail=f"dry run: would {resolved.describe()}",
                allowed=True,
            ))

    def _process_account(self, summary: RunSummary, account: AccountTarget,
                         operations: Iterable[OperationSpec]) -> None:
        """Apply every operation to one account with its own credential."""
        operations = list(operations)
        credential: Optional[ScopedCredential] = None

        try:
            try:
                credential = self._with_retries(
                    f"assume role in {account.team_name}",
                    lambda: self.broker.acquire(account.account_id, account.assume_role_name),
                )
            except BaselineError as e:
                logger.error(f"✗ Could not acquire credentials for {account.team_name}: {e}")
                self._record_all(summary, account, operations, OperationStatus.FAILED, str(e))
                return
            except Exception as e:
                logger.error(f"✗ Unexpected error acquiring credentials for {account.team_name}",
                             exc_info=True)
                self._record_all(summary, account, operations, OperationStatus.FAILED,
                                 self._unexpected(e))
                return

            context = account.template_context(self.cloud_team_email, self.region)
            failed = set()

            for position, spec in enumerate(operations):
                blocking = [dep for dep in spec.depends_on if dep in failed]
                if blocking and self.skip_on_failed_dependency:
                    logger.warning(f"Skipping {spec.name} for {account.team_name}: dependency failed")
                    failed.add(spec.name)
                    summary.record(OperationOutcome(
                        account=account,
                        operation_name=spec.name,
                        status=OperationStatus.SKIPPED,
                        error_detail=f"dependency failed: {', '.join(blocking)}",
                    ))
                    continue

                try:
                    resolved = OperationRegistry.resolve(spec, context)
                    self._apply(credential, account, resolved)
                except AuthorizationError as e:
                    logger.error(f"✗ {spec.name} not authorized for {account.team_name}: {e}")
                    self._record_all(summary, account, operations[position:], OperationStatus.FAILED, str(e))
                    return
                except BaselineError as e:
                    logger.error(f"✗ {spec.name} failed for {account.team_name}: {e}")
                    failed.add(spec.name)
                    summary.record(OperationOutcome(
                        account=account,
                        operation_name=spec.name,
                        status=OperationStatus.FAILED,
                        error_detail=str(e),
                    ))
                    continue
                except Exception as e:
                    # Unclassified failure ends this account only
                    logger.error(f"✗ Unexpected error in {spec.name} for {account.team_name}",
                                 exc_info=True)
                    self._record_all(summary, account, operations[position:], OperationStatus.FAILED,
                                     self._unexpected(e))
                    return

                logger.info(f"✓ {spec.name} completed for {account.team_name}")
                summary.record(OperationOutcome(
                    account=account,
                    operation_name=spec.name,
                    status=OperationStatus.SUCCESS,
                ))
        finally:
            # Never carried over to the next account
            credential = None
            logger.info(f"Completed processing for {account.team_name}")

    def _apply(self, credential: ScopedCredential, account: AccountTarget,
               resolved: ResolvedOperation) -> None:
        """Apply one resolved operation.

        Raises:
            AuthorizationError, TransientError, ExternalServiceError
        """
        if not credential.is_for(account.account_id):
            raise AuthorizationError(
                f"Credential for {credential.account_id} cannot be used for {account.account_id}"
            )

        spec = resolved.spec
        if spec.kind == KIND_RECORDER:
            recorder_name = resolved.parameters["RecorderName"]
            try:
                result = self._call(
                    spec, lambda: self.control_plane.start_recorder(credential, recorder_name, self.region)
                )
            except ExternalServiceError as e:
                if e.code in RECORDER_ALREADY_RUNNING_CODES:
                    logger.info(f"Recorder {recorder_name} already running")
                    return
                raise
            if result not in SUCCESS_RECORDER_RESULTS:
                raise ExternalServiceError(f"Unexpected recorder result: {result}")
            return

        result = self._call(
            spec,
            lambda: self.control_plane.apply_declarative_infra(
                credential, spec.template_ref, resolved.parameters, self.region,
                stack_name=resolved.stack_name,
            ),
        )
        if result not in SUCCESS_APPLY_RESULTS:
            raise ExternalServiceError(f"Unexpected stack result: {result}")

    def _call(self, spec: OperationSpec, call: Callable):
        if spec.idempotent:
            return self._with_retries(spec.name, call)
        return call()

    def _with_retries(self, description: str, call: Callable):
        """Run call, retrying TransientError with a fixed backoff.

        Raises:
            TransientError: When every attempt failed transiently
        """
        attempt = 0
        while True:
            try:
                return call()
            except TransientError as e:
                if attempt >= self.max_retries:
                    raise TransientError(
                        f"{description} failed after {attempt + 1} attempts: {e}"
                    )
                attempt += 1
                logger.warning(
                    f"{description} failed transiently ({e}), "
                    f"retry {attempt}/{self.max_retries} in {self.retry_backoff}s"
                )
                self._sleep(self.retry_backoff)

    @staticmethod
    def _unexpected(error: Exception) -> str:
        return f"unexpected error: {type(error).__name__}: {error}"

    @staticmethod
    def _record_all(summary: RunSummary, account: AccountTarget,
                    operations: List[OperationSpec], status: OperationStatus,
                    detail: str, allowed: bool = False) -> None:
        for spec in operations:
            summary.record(OperationOutcome(
                account=account,
                operation_name=spec.name,
                status=status,
                error_detail=detail,
                allowed=allowed,
            ))
