"""Unit tests for AWS Client Manager."""

from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError, NoCredentialsError, ProfileNotFound

from hackathon_baseline.core.aws_client import AWSClientManager
from hackathon_baseline.deployment.credentials import ScopedCredential


def make_session(region_name="us-east-1", clients=None):
    """Build a mock boto3 session whose STS identity check succeeds."""
    mock_session = Mock()
    mock_session.region_name = region_name
    mock_sts_client = Mock()
    mock_sts_client.get_caller_identity.return_value = {"Account": "123456789012"}
    clients = dict(clients or {})
    clients.setdefault("sts", mock_sts_client)

    def client_side_effect(service_name, region_name=None, config=None):
        return clients.get(service_name, Mock())

    mock_session.client.side_effect = client_side_effect
    return mock_session, clients


class TestAWSClientManager:
    """Test cases for AWSClientManager class."""

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_init_success(self, mock_session_class):
        """Test successful initialization."""
        mock_session, clients = make_session()
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()

        assert manager._profile_name is None
        clients["sts"].get_caller_identity.assert_called_once()

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_init_with_profile(self, mock_session_class):
        """Test initialization with profile."""
        mock_session, _ = make_session()
        mock_session_class.return_value = mock_session

        manager = AWSClientManager(profile_name="hackathon-admin")

        assert manager._profile_name == "hackathon-admin"
        mock_session_class.assert_called_with(profile_name="hackathon-admin")

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_init_no_credentials(self, mock_session_class):
        """Test initialization with no credentials."""
        mock_sts_client = Mock()
        mock_sts_client.get_caller_identity.side_effect = NoCredentialsError()
        mock_session, _ = make_session(clients={"sts": mock_sts_client})
        mock_session_class.return_value = mock_session

        with pytest.raises(NoCredentialsError):
            AWSClientManager()

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_init_profile_not_found(self, mock_session_class):
        """Test initialization with invalid profile."""
        mock_session_class.side_effect = ProfileNotFound(profile="invalid")

        with pytest.raises(ProfileNotFound):
            AWSClientManager(profile_name="invalid")

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_init_invalid_user(self, mock_session_class):
        """Test expired credentials surface as NoCredentialsError."""
        mock_sts_client = Mock()
        mock_sts_client.get_caller_identity.side_effect = ClientError(
            {"Error": {"Code": "InvalidUserID.NotFound", "Message": "gone"}},
            "GetCallerIdentity",
        )
        mock_session, _ = make_session(clients={"sts": mock_sts_client})
        mock_session_class.return_value = mock_session

        with pytest.raises(NoCredentialsError):
            AWSClientManager()

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_get_client_caching(self, mock_session_class):
        """Test client caching functionality."""
        mock_cfn_client = Mock()
        mock_session, _ = make_session(clients={"cloudformation": mock_cfn_client})
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()

        client1 = manager.get_client("cloudformation", "ap-south-1")
        client2 = manager.get_client("cloudformation", "ap-south-1")

        assert client1 is client2
        assert client1 is mock_cfn_client

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_get_client_passes_timeouts(self, mock_session_class):
        """Test clients are created with bounded timeouts."""
        mock_session, _ = make_session()
        mock_session_class.return_value = mock_session

        manager = AWSClientManager(connect_timeout=3, read_timeout=7)
        manager.get_client("organizations", "us-east-1")

        _, kwargs = mock_session.client.call_args
        assert kwargs["config"].connect_timeout == 3
        assert kwargs["config"].read_timeout == 7

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_get_scoped_client_is_not_cached(self, mock_session_class):
        """Test scoped clients use their own session and are never cached."""
        base_session, _ = make_session()
        scoped_session = Mock()
        mock_session_class.side_effect = [base_session, scoped_session, Mock()]

        manager = AWSClientManager()
        credential = ScopedCredential(
            account_id="111111111111",
            access_key="AKIAEXAMPLE",
            secret_key="secret",
            session_token="token",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )

        client = manager.get_scoped_client(credential, "cloudformation", "ap-south-1")

        assert client is scoped_session.client.return_value
        mock_session_class.assert_any_call(
            aws_access_key_id="AKIAEXAMPLE",
            aws_secret_access_key="secret",
            aws_session_token="token",
        )
        assert manager._clients == {}

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_get_current_region(self, mock_session_class):
        """Test getting current region."""
        mock_session, _ = make_session(region_name="us-west-2")
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()

        assert manager.get_current_region() == "us-west-2"

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_get_current_region_explicit(self, mock_session_class):
        """Test an explicit region wins over the session region."""
        mock_session, _ = make_session(region_name="us-west-2")
        mock_session_class.return_value = mock_session

        manager = AWSClientManager(region_name="ap-south-1")

        assert manager.get_current_region() == "ap-south-1"

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_get_current_region_default(self, mock_session_class):
        """Test getting current region with default fallback."""
        mock_session, _ = make_session(region_name=None)
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()

        assert manager.get_current_region() == "us-east-1"

    @patch("hackathon_baseline.core.aws_client.boto3.Session")
    def test_get_account_id(self, mock_session_class):
        """Test getting account ID."""
        mock_session, _ = make_session()
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()

        assert manager.get_account_id() == "123456789012"
