"""Tests for account target loading and iteration."""

import copy

import pytest

from hackathon_baseline.core.config import ConfigurationError
from hackathon_baseline.deployment.accounts import AccountIterator, AccountTarget


class TestAccountIterator:
    """Test AccountIterator class."""

    def test_preserves_source_order(self, three_accounts_source):
        iterator = AccountIterator(three_accounts_source)

        assert [a.team_name for a in iterator.accounts()] == ["team-01", "team-02", "team-03"]

    def test_is_restartable(self, account_iterator):
        first = list(account_iterator.accounts())
        second = list(account_iterator)

        assert first == second
        assert len(account_iterator) == 2

    def test_builds_targets(self, account_iterator):
        team_01 = next(account_iterator.accounts())

        assert team_01 == AccountTarget(
            team_name="team-01",
            account_id="111111111111",
            budget_limit=500,
            team_email="team01@example.com",
            assume_role_name="OrganizationAccountAccessRole",
        )

    def test_default_budget_limit(self, three_accounts_source):
        team_03 = list(AccountIterator(three_accounts_source))[2]

        assert team_03.budget_limit == 500

    def test_default_role_name(self, accounts_source):
        iterator = AccountIterator(accounts_source, default_role_name="HackathonAdmin")

        assert {a.assume_role_name for a in iterator} == {"HackathonAdmin"}

    def test_per_account_role_override(self, accounts_source):
        accounts_source[1]["assumeRoleName"] = "TeamAdmin"

        roles = [a.assume_role_name for a in AccountIterator(accounts_source)]

        assert roles == ["OrganizationAccountAccessRole", "TeamAdmin"]

    def test_does_not_mutate_source(self, three_accounts_source):
        original = copy.deepcopy(three_accounts_source)

        list(AccountIterator(three_accounts_source))

        assert three_accounts_source == original

    def test_numeric_account_id_is_accepted(self, accounts_source):
        accounts_source[0]["accountId"] = 111111111111

        assert next(iter(AccountIterator(accounts_source))).account_id == "111111111111"

    @pytest.mark.parametrize("field", ["teamName", "accountId", "teamEmail"])
    def test_missing_required_field(self, accounts_source, field):
        del accounts_source[1][field]

        with pytest.raises(ConfigurationError, match=f"'{field}' is missing in accounts\\[1\\]"):
            AccountIterator(accounts_source)

    def test_duplicate_team_name(self, accounts_source):
        accounts_source[1]["teamName"] = "team-01"

        with pytest.raises(ConfigurationError, match="Duplicate teamName 'team-01'"):
            AccountIterator(accounts_source)

    @pytest.mark.parametrize("budget", [0, -100])
    def test_non_positive_budget(self, accounts_source, budget):
        accounts_source[0]["budgetLimit"] = budget

        with pytest.raises(ConfigurationError, match="must be positive"):
            AccountIterator(accounts_source)

    def test_null_budget_uses_default(self, accounts_source):
        accounts_source[0]["budgetLimit"] = None

        assert next(iter(AccountIterator(accounts_source))).budget_limit == 500

    @pytest.mark.parametrize("budget", ["500", True, [500]])
    def test_non_numeric_budget(self, accounts_source, budget):
        accounts_source[0]["budgetLimit"] = budget

        with pytest.raises(ConfigurationError, match="must be a number"):
            AccountIterator(accounts_source)

    @pytest.mark.parametrize("account_id", ["12345", "abcdefghijkl", "1234567890123"])
    def test_invalid_account_id(self, accounts_source, account_id):
        accounts_source[0]["accountId"] = account_id

        with pytest.raises(ConfigurationError, match="12-digit"):
            AccountIterator(accounts_source)

    def test_entry_must_be_mapping(self):
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            AccountIterator(["team-01"])

    def test_require_team(self, account_iterator):
        account_iterator.require_team(None)
        account_iterator.require_team("team-02")

        with pytest.raises(ConfigurationError, match="Unknown team 'team-99'"):
            account_iterator.require_team("team-99")


class TestAccountTarget:

    def test_template_context(self, account_iterator):
        team_02 = list(account_iterator)[1]

        context = team_02.template_context("cloud@example.com", "ap-south-1")

        assert context == {
            "team_name": "team-02",
            "account_id": "222222222222",
            "budget_limit": "1000",
            "event_budget_limit": "4000",
            "team_email": "team02@example.com",
            "cloud_team_email": "cloud@example.com",
            "region": "ap-south-1",
        }

    def test_fractional_budget_in_context(self):
        target = AccountTarget("team-x", "444444444444", 250.5, "x@example.com")

        context = target.template_context("cloud@example.com", "ap-south-1")

        assert context["budget_limit"] == "250.5"
        assert context["event_budget_limit"] == "1002"
