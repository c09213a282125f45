"""Hackathon guardrails Service Control Policy deployment.

This module provides the SCPDeployer class which creates (or updates) the
guardrails SCP from a policy document file and attaches it to the hackathon
organizational unit. Re-running it against an organization that already has
the policy attached is a no-op.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from botocore.exceptions import ClientError

from ..core.aws_client import AWSClientManager


logger = logging.getLogger(__name__)

DEFAULT_POLICY_NAME = "HackathonGuardrails"
DEFAULT_POLICY_DESCRIPTION = (
    "Service Control Policy for the hackathon OU - "
    "Enforces security guardrails and cost controls"
)
# AWS limit on SCP document size
MAX_POLICY_SIZE = 5120


class SCPDeploymentError(Exception):
    """Raised when SCP deployment fails."""
    pass


@dataclass
class SCPDeploymentResult:
    """What an SCP deployment did."""

    policy_id: str
    policy_name: str
    ou_id: str
    ou_name: str
    created: bool = False
    updated: bool = False
    newly_attached: bool = False
    ou_accounts: List[Dict[str, str]] = field(default_factory=list)


class SCPDeployer:
    """Deploys the guardrails SCP to an organizational unit."""

    def __init__(self, aws_client_manager: AWSClientManager) -> None:
        """Initialize the SCP deployer.

        Args:
            aws_client_manager: AWS client manager for the management account
        """
        self.aws_client_manager = aws_client_manager
        self._organizations_client = None

    @property
    def organizations_client(self):
        """Get Organizations client with lazy initialization."""
        if self._organizations_client is None:
            self._organizations_client = self.aws_client_manager.get_client('organizations')
        return self._organizations_client

    def deploy(self, ou_id: str, policy_file: Path,
               policy_name: str = DEFAULT_POLICY_NAME,
               description: str = DEFAULT_POLICY_DESCRIPTION,
               update: bool = False) -> SCPDeploymentResult:
        """Create or reuse the SCP and attach it to the OU.

        Args:
            ou_id: Target organizational unit ID
            policy_file: Path to the SCP JSON document
            policy_name: SCP name
            description: SCP description
            update: Update the policy content if it already exists

        Returns:
            SCPDeploymentResult describing what changed

        Raises:
            SCPDeploymentError: When any step fails
        """
        policy_content = self.load_policy_document(policy_file)
        ou_name = self.verify_ou(ou_id)
        ou_accounts = self.list_ou_accounts(ou_id)

        existing_id = self.get_existing_policy_id(policy_name)
        created = updated = False

        if existing_id:
            logger.info(f"Found existing policy: {policy_name} (ID: {existing_id})")
            if update:
                self._update_policy(existing_id, policy_name, description, policy_content)
                updated = True
            else:
                logger.warning("Policy already exists. Use --update to update its content.")
            policy_id = existing_id
        else:
            policy_id = self._create_policy(policy_name, description, policy_content)
            created = True

        newly_attached = self.attach_policy_to_ou(policy_id, ou_id)

        return SCPDeploymentResult(
            policy_id=policy_id,
            policy_name=policy_name,
            ou_id=ou_id,
            ou_name=ou_name,
            created=created,
            updated=updated,
            newly_attached=newly_attached,
            ou_accounts=ou_accounts,
        )

    @staticmethod
    def load_policy_document(policy_file: Path) -> str:
        """Load and validate an SCP document.

        Args:
            policy_file: Path to the SCP JSON document

        Returns:
            Compact JSON policy content

        Raises:
            SCPDeploymentError: When the file is missing or not a valid SCP document
        """
        path = Path(policy_file)
        if not path.is_file():
            raise SCPDeploymentError(f"SCP policy file not found: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise SCPDeploymentError(f"Invalid JSON in SCP file {path}: {e}")

        if not isinstance(document, dict):
            raise SCPDeploymentError(f"SCP document must be a JSON object: {path}")
        for required in ('Version', 'Statement'):
            if required not in document:
                raise SCPDeploymentError(f"SCP document missing '{required}' field: {path}")

        content = json.dumps(document, separators=(',', ':'))
        if len(content) > MAX_POLICY_SIZE:
            raise SCPDeploymentError(
                f"SCP document too large ({len(content)} chars, limit {MAX_POLICY_SIZE}): {path}"
            )
        return content

    def verify_ou(self, ou_id: str) -> str:
        """Check the OU exists.

        Returns:
            The OU name

        Raises:
            SCPDeploymentError: When the OU cannot be found
        """
        try:
            response = self.organizations_client.describe_organizational_unit(
                OrganizationalUnitId=ou_id
            )
        except ClientError as e:
            raise SCPDeploymentError(f"OU not found: {ou_id}: {e.response['Error']['Message']}")

        ou_name = response['OrganizationalUnit']['Name']
        logger.info(f"✓ Found OU: {ou_name} ({ou_id})")
        return ou_name

    def list_ou_accounts(self, ou_id: str) -> List[Dict[str, str]]:
        """List accounts directly under the OU.

        Returns:
            List of {'id', 'name'} dictionaries
        """
        try:
            accounts = []
            paginator = self.organizations_client.get_paginator('list_accounts_for_parent')
            for page in paginator.paginate(ParentId=ou_id):
                for account in page['Accounts']:
                    accounts.append({'id': account['Id'], 'name': account['Name']})
        except ClientError as e:
            raise SCPDeploymentError(f"Failed to list accounts in OU {ou_id}: {e}")

        if not accounts:
            logger.warning(f"No accounts found in OU {ou_id}")
        for account in accounts:
            logger.info(f"  Account: {account['id']} - {account['name']}")
        return accounts

    def get_existing_policy_id(self, policy_name: str) -> Optional[str]:
        """Find an SCP by name.

        Returns:
            Policy ID, or None if no SCP has that name
        """
        try:
            paginator = self.organizations_client.get_paginator('list_policies')
            for page in paginator.paginate(Filter='SERVICE_CONTROL_POLICY'):
                for policy in page['Policies']:
                    if policy['Name'] == policy_name:
                        return policy['Id']
        except ClientError as e:
            error_message = e.response['Error']['Message']
            raise SCPDeploymentError(f"Failed to list existing policies: {error_message}")
        return None

    def attach_policy_to_ou(self, policy_id: str, ou_id: str) -> bool:
        """Attach a policy to an OU unless it is already attached.

        Returns:
            True if the policy was attached now, False if it already was
        """
        try:
            if self._is_attached(policy_id, ou_id):
                logger.warning(f"SCP is already attached to OU: {ou_id}")
                return False

            self.organizations_client.attach_policy(PolicyId=policy_id, TargetId=ou_id)
            logger.info(f"✓ Attached SCP to OU: {ou_id}")
            return True

        except ClientError as e:
            error_code = e.response['Error']['Code']
            error_message = e.response['Error']['Message']

            if error_code == 'DuplicatePolicyAttachmentException':
                return False
            elif error_code == 'PolicyNotAttachableException':
                raise SCPDeploymentError(f"Policy cannot be attached to OU: {error_message}")
            else:
                raise SCPDeploymentError(f"Failed to attach policy to OU: {error_message}")

    def _is_attached(self, policy_id: str, ou_id: str) -> bool:
        paginator = self.organizations_client.get_paginator('list_policies_for_target')
        for page in paginator.paginate(TargetId=ou_id, Filter='SERVICE_CONTROL_POLICY'):
            if any(policy['Id'] == policy_id for policy in page['Policies']):
                return True
        return False

    def _create_policy(self, name: str, description: str, content: str) -> str:
        try:
            response = self.organizations_client.create_policy(
                Name=name,
                Description=description,
                Type='SERVICE_CONTROL_POLICY',
                Content=content
            )
        except ClientError as e:
            error_code = e.response['Error']['Code']
            error_message = e.response['Error']['Message']
            if error_code == 'DuplicatePolicyException':
                raise SCPDeploymentError(f"Policy with same name already exists: {name}")
            raise SCPDeploymentError(f"Failed to create SCP '{name}': {error_message}")

        policy_id = response['Policy']['PolicySummary']['Id']
        logger.info(f"✓ Created SCP: {name} (ID: {policy_id})")
        return policy_id

    def _update_policy(self, policy_id: str, name: str, description: str, content: str) -> None:
        try:
            self.organizations_client.update_policy(
                PolicyId=policy_id,
                Name=name,
                Description=description,
                Content=content
            )
        except ClientError as e:
            error_message = e.response['Error']['Message']
            raise SCPDeploymentError(f"Failed to update SCP '{name}': {error_message}")
        logger.info(f"✓ Updated SCP: {name}")

    @staticmethod
    def describe_result(result: SCPDeploymentResult) -> Dict[str, Any]:
        return {
            'Policy ID': result.policy_id,
            'Policy Name': result.policy_name,
            'OU': f"{result.ou_name} ({result.ou_id})",
            'Accounts in OU': len(result.ou_accounts),
        }
