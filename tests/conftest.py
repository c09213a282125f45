"""Shared fixtures for hackathon baseline tests."""

from datetime import datetime, timedelta, timezone

import pytest

from hackathon_baseline.deployment.accounts import AccountIterator
from hackathon_baseline.deployment.control_plane import ApplyResult, RecorderResult
from hackathon_baseline.deployment.credentials import ScopedCredential


class StubControlPlane:
    """Call-recording control-plane client.

    Behaviour per account can be overridden with ``assume_errors``,
    ``apply_errors`` (keyed by (account_id, stack_name)) and
    ``recorder_errors``. Values may be an exception or a list consumed one
    per call (None meaning succeed).
    """

    def __init__(self, apply_result=ApplyResult.CREATED, recorder_result=RecorderResult.STARTED):
        self.apply_result = apply_result
        self.recorder_result = recorder_result
        self.assume_errors = {}
        self.apply_errors = {}
        self.recorder_errors = {}
        self.calls = []
        self.issued = []

    @staticmethod
    def _maybe_raise(errors, key):
        error = errors.get(key)
        if isinstance(error, list):
            error = error.pop(0) if error else None
        if error is not None:
            raise error

    def assume_role(self, account_id, role_name, ttl_seconds):
        self.calls.append(("assume_role", account_id, role_name, ttl_seconds))
        self._maybe_raise(self.assume_errors, account_id)
        credential = ScopedCredential(
            account_id=account_id,
            access_key=f"AKIA{account_id}",
            secret_key=f"secret-{account_id}",
            session_token=f"token-{account_id}",
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds),
        )
        self.issued.append(credential)
        return credential

    def apply_declarative_infra(self, credential, template_ref, parameters, region, stack_name=None):
        self.calls.append(("apply", credential, template_ref, dict(parameters), region, stack_name))
        self._maybe_raise(self.apply_errors, (credential.account_id, stack_name))
        return self.apply_result

    def start_recorder(self, credential, recorder_name, region):
        self.calls.append(("start_recorder", credential, recorder_name, region))
        self._maybe_raise(self.recorder_errors, credential.account_id)
        return self.recorder_result

    def calls_named(self, name):
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def stub_control_plane():
    return StubControlPlane()


@pytest.fixture
def accounts_source():
    return [
        {
            "teamName": "team-01",
            "accountId": "111111111111",
            "budgetLimit": 500,
            "teamEmail": "team01@example.com",
        },
        {
            "teamName": "team-02",
            "accountId": "222222222222",
            "budgetLimit": 1000,
            "teamEmail": "team02@example.com",
        },
    ]


@pytest.fixture
def three_accounts_source(accounts_source):
    return accounts_source + [
        {
            "teamName": "team-03",
            "accountId": "333333333333",
            "teamEmail": "team03@example.com",
        }
    ]


@pytest.fixture
def account_iterator(accounts_source):
    return AccountIterator(accounts_source)
