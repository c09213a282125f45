"""Centralized AWS client management with session handling.

This module provides the base session used for the management account
(STS and Organizations calls) and builds short-lived, uncached clients
for scoped credentials issued for a single member account.
"""

from typing import Any, Dict, Optional
import boto3
from botocore.config import Config
from botocore.exceptions import (
    NoCredentialsError,
    ClientError,
    ProfileNotFound,
)


# Every call made through this manager has a bounded duration.
DEFAULT_CONNECT_TIMEOUT = 10
DEFAULT_READ_TIMEOUT = 60
DEFAULT_MAX_ATTEMPTS = 3


class AWSClientManager:
    """Centralized AWS client management with session handling.

    Clients for the base session are cached per service and region.
    Clients built from scoped credentials are never cached so nothing
    issued for one account can leak into the next.
    """

    def __init__(
        self,
        profile_name: Optional[str] = None,
        region_name: Optional[str] = None,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: int = DEFAULT_READ_TIMEOUT,
    ) -> None:
        """Initialize AWS client manager.

        Args:
            profile_name: Optional AWS profile name for credentials
            region_name: Optional default region for clients
            connect_timeout: Socket connect timeout in seconds
            read_timeout: Socket read timeout in seconds

        Raises:
            NoCredentialsError: When AWS credentials are not available
            ProfileNotFound: When specified profile doesn't exist
        """
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._profile_name = profile_name
        self._region_name = region_name
        self._client_config = Config(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": DEFAULT_MAX_ATTEMPTS, "mode": "standard"},
        )
        self._validate_credentials()

    def _validate_credentials(self) -> None:
        """Validate AWS credentials are available and working.

        Raises:
            NoCredentialsError: When AWS credentials are not available
            ProfileNotFound: When specified profile doesn't exist
        """
        try:
            session = self._get_session()
            # Test credentials by getting caller identity
            sts_client = session.client("sts")
            sts_client.get_caller_identity()
        except NoCredentialsError:
            raise NoCredentialsError()
        except ProfileNotFound:
            raise ProfileNotFound(profile=self._profile_name)
        except ClientError as e:
            if e.response["Error"]["Code"] == "InvalidUserID.NotFound":
                raise NoCredentialsError() from e
            raise

    def _get_session(self) -> boto3.Session:
        """Get or create boto3 session.

        Returns:
            Configured boto3 session
        """
        if self._session is None:
            if self._profile_name:
                self._session = boto3.Session(profile_name=self._profile_name)
            else:
                self._session = boto3.Session()
        return self._session

    def get_client(self, service_name: str, region_name: Optional[str] = None) -> Any:
        """Get AWS service client for the base session.

        Args:
            service_name: AWS service name (e.g., 'sts', 'organizations')
            region_name: AWS region name, defaults to the manager's region

        Returns:
            Configured boto3 client for the service and region
        """
        region = region_name or self.get_current_region()
        client_key = f"{service_name}_{region}"

        if client_key not in self._clients:
            session = self._get_session()
            self._clients[client_key] = session.client(
                service_name, region_name=region, config=self._client_config
            )

        return self._clients[client_key]

    def get_scoped_client(self, credential: Any, service_name: str, region_name: str) -> Any:
        """Build an uncached client from a scoped credential.

        Args:
            credential: ScopedCredential issued for one member account
            service_name: AWS service name (e.g., 'cloudformation', 'config')
            region_name: AWS region name

        Returns:
            boto3 client bound to the scoped credential only
        """
        session = boto3.Session(
            aws_access_key_id=credential.access_key,
            aws_secret_access_key=credential.secret_key,
            aws_session_token=credential.session_token,
        )
        return session.client(service_name, region_name=region_name, config=self._client_config)

    def get_current_region(self) -> str:
        """Get current AWS region.

        Returns:
            Explicit region if given, else the session region, else us-east-1
        """
        if self._region_name:
            return self._region_name
        session = self._get_session()
        return session.region_name or "us-east-1"

    def get_account_id(self) -> str:
        """Get current AWS account ID.

        Returns:
            Current AWS account ID

        Raises:
            ClientError: When unable to get account information
        """
        sts_client = self.get_client("sts")
        response = sts_client.get_caller_identity()
        return response["Account"]
