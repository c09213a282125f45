"""AWS control-plane client for baseline deployment.

This module wraps the three external calls the orchestrator needs:
STS AssumeRole, CloudFormation stack create/update and AWS Config
recorder start. Every botocore failure is translated into the error
taxonomy in core.errors.
"""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from ..core.aws_client import AWSClientManager
from ..core.errors import (
    ExternalServiceError,
    TransientError,
    classify_botocore_error,
    classify_client_error,
)
from .credentials import ScopedCredential


logger = logging.getLogger(__name__)


class ApplyResult(Enum):
    """Outcome of an apply-declarative-infrastructure call."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class RecorderResult(Enum):
    """Outcome of a start-recorder call."""

    STARTED = "started"
    ALREADY_RUNNING = "alreadyRunning"


NO_UPDATES_MESSAGE = "No updates are to be performed"
STACK_CAPABILITIES = ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"]
# A stack in this state cannot be updated; it has to be deleted first.
UNRECOVERABLE_STACK_STATUSES = ("ROLLBACK_COMPLETE", "ROLLBACK_FAILED", "DELETE_FAILED")
IN_PROGRESS_WAITERS = {
    "CREATE_IN_PROGRESS": ("stack_create_complete", ApplyResult.CREATED),
    "UPDATE_IN_PROGRESS": ("stack_update_complete", ApplyResult.UPDATED),
    "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS": ("stack_update_complete", ApplyResult.UPDATED),
}


class ControlPlaneClient:
    """boto3-backed control-plane client.

    Calls against member accounts use uncached clients built from the
    ScopedCredential passed in; the credential must have been issued for
    the account the call targets.
    """

    # Stack waits are bounded by WAITER_DELAY_SECONDS * WAITER_MAX_ATTEMPTS (30 minutes)
    WAITER_DELAY_SECONDS = 15
    WAITER_MAX_ATTEMPTS = 120

    SESSION_NAME_PREFIX = "hackathon-deployment"

    def __init__(self, aws_client_manager: AWSClientManager, templates_dir: Path) -> None:
        """Initialize the control-plane client.

        Args:
            aws_client_manager: AWS client manager for the management account
            templates_dir: Directory CloudFormation template references resolve against
        """
        self.aws_client_manager = aws_client_manager
        self.templates_dir = Path(templates_dir)

    def assume_role(self, account_id: str, role_name: str, ttl_seconds: int) -> ScopedCredential:
        """Assume a role in a member account.

        Args:
            account_id: Target AWS account ID
            role_name: Role name in the target account
            ttl_seconds: Credential lifetime in seconds

        Returns:
            ScopedCredential issued for account_id

        Raises:
            AuthorizationError: When the caller may not assume the role
            TransientError: When STS is unreachable, throttled or timed out
            ExternalServiceError: For any other STS failure
        """
        role_arn = f"arn:aws:iam::{account_id}:role/{role_name}"
        session_name = f"{self.SESSION_NAME_PREFIX}-{int(time.time())}"
        sts_client = self.aws_client_manager.get_client("sts")

        try:
            response = sts_client.assume_role(
                RoleArn=role_arn,
                RoleSessionName=session_name,
                DurationSeconds=ttl_seconds,
            )
            credentials = response["Credentials"]
            return ScopedCredential(
                account_id=account_id,
                access_key=credentials["AccessKeyId"],
                secret_key=credentials["SecretAccessKey"],
                session_token=credentials["SessionToken"],
                expires_at=credentials["Expiration"],
            )
        except ClientError as e:
            raise classify_client_error(e, f"AssumeRole {role_arn}")
        except BotoCoreError as e:
            raise classify_botocore_error(e, f"AssumeRole {role_arn}")
        except KeyError as e:
            raise ExternalServiceError(f"AssumeRole {role_arn}: malformed response, missing {e}")

    def apply_declarative_infra(
        self,
        credential: ScopedCredential,
        template_ref: str,
        parameters: Dict[str, str],
        region: str,
        stack_name: Optional[str] = None,
    ) -> ApplyResult:
        """Create or update a CloudFormation stack and wait for completion.

        Args:
            credential: Credential for the target account
            template_ref: Template path relative to templates_dir
            parameters: Stack parameters
            region: Region to deploy the stack to
            stack_name: Stack name (default: derived from the template file name)

        Returns:
            ApplyResult.CREATED, UPDATED or UNCHANGED

        Raises:
            AuthorizationError, TransientError, ExternalServiceError
        """
        stack_name = stack_name or Path(template_ref).stem
        template_body = self._read_template(template_ref)
        cfn_client = self.aws_client_manager.get_scoped_client(credential, "cloudformation", region)

        stack_parameters = [
            {"ParameterKey": key, "ParameterValue": value}
            for key, value in parameters.items()
        ]
        stack_args = {
            "StackName": stack_name,
            "TemplateBody": template_body,
            "Parameters": stack_parameters,
            "Capabilities": STACK_CAPABILITIES,
        }

        try:
            status = self._get_stack_status(cfn_client, stack_name)
            if status in UNRECOVERABLE_STACK_STATUSES:
                raise ExternalServiceError(
                    f"Stack {stack_name} is in {status} and must be deleted before redeploying",
                    code=status,
                )

            if status in IN_PROGRESS_WAITERS:
                # Left running by an earlier attempt that timed out
                waiter_name, result = IN_PROGRESS_WAITERS[status]
                logger.info(f"Stack {stack_name} is {status}, waiting for it to finish")
                self._wait(cfn_client, waiter_name, stack_name)
                return result

            if status is not None and status.endswith("_IN_PROGRESS"):
                raise TransientError(f"Stack {stack_name} is busy ({status})")

            if status is None:
                logger.info(f"Creating stack {stack_name} in {credential.account_id}/{region}")
                cfn_client.create_stack(**stack_args)
                self._wait(cfn_client, "stack_create_complete", stack_name)
                return ApplyResult.CREATED

            logger.info(f"Updating stack {stack_name} in {credential.account_id}/{region}")
            try:
                cfn_client.update_stack(**stack_args)
            except ClientError as e:
                if NO_UPDATES_MESSAGE in e.response.get("Error", {}).get("Message", ""):
                    logger.info(f"Stack {stack_name} is already up to date")
                    return ApplyResult.UNCHANGED
                raise
            self._wait(cfn_client, "stack_update_complete", stack_name)
            return ApplyResult.UPDATED

        except ClientError as e:
            raise classify_client_error(e, f"Deploy stack {stack_name}")
        except BotoCoreError as e:
            raise classify_botocore_error(e, f"Deploy stack {stack_name}")
        except KeyError as e:
            raise ExternalServiceError(f"Deploy stack {stack_name}: malformed response, missing {e}")

    def start_recorder(self, credential: ScopedCredential, recorder_name: str, region: str) -> RecorderResult:
        """Start an AWS Config configuration recorder.

        Args:
            credential: Credential for the target account
            recorder_name: Configuration recorder name
            region: Region of the recorder

        Returns:
            RecorderResult.STARTED or ALREADY_RUNNING

        Raises:
            AuthorizationError, TransientError, ExternalServiceError
        """
        config_client = self.aws_client_manager.get_scoped_client(credential, "config", region)

        try:
            response = config_client.describe_configuration_recorder_status(
                ConfigurationRecorderNames=[recorder_name]
            )
            statuses = response.get("ConfigurationRecordersStatus", [])
            if statuses and statuses[0].get("recording"):
                logger.info(f"Recorder {recorder_name} is already running")
                return RecorderResult.ALREADY_RUNNING

            config_client.start_configuration_recorder(
                ConfigurationRecorderName=recorder_name
            )
            logger.info(f"Started recorder {recorder_name} in {credential.account_id}/{region}")
            return RecorderResult.STARTED

        except ClientError as e:
            raise classify_client_error(e, f"Start recorder {recorder_name}")
        except BotoCoreError as e:
            raise classify_botocore_error(e, f"Start recorder {recorder_name}")

    def _read_template(self, template_ref: str) -> str:
        template_path = self.templates_dir / template_ref
        try:
            return template_path.read_text(encoding="utf-8")
        except IOError as e:
            raise ExternalServiceError(f"Unable to read template {template_path}: {e}")

    @staticmethod
    def _get_stack_status(cfn_client, stack_name: str) -> Optional[str]:
        """Get a stack's status, or None if it does not exist."""
        try:
            response = cfn_client.describe_stacks(StackName=stack_name)
        except ClientError as e:
            error = e.response.get("Error", {})
            if error.get("Code") == "ValidationError" and "does not exist" in error.get("Message", ""):
                return None
            raise
        stacks = response.get("Stacks", [])
        return stacks[0]["StackStatus"] if stacks else None

    def _wait(self, cfn_client, waiter_name: str, stack_name: str) -> None:
        """Wait for a stack operation with a bounded number of polls.

        Raises:
            TransientError: When the wait times out
            ExternalServiceError: When the stack reaches a failure state
        """
        waiter = cfn_client.get_waiter(waiter_name)
        try:
            waiter.wait(
                StackName=stack_name,
                WaiterConfig={
                    "Delay": self.WAITER_DELAY_SECONDS,
                    "MaxAttempts": self.WAITER_MAX_ATTEMPTS,
                },
            )
        except WaiterError as e:
            if "Max attempts exceeded" in str(e):
                raise TransientError(f"Timed out waiting for stack {stack_name}: {e}")
            raise ExternalServiceError(f"Stack {stack_name} did not complete: {e}")
