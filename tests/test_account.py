"""Tests for the account service."""

import pytest

from conftest import OTHER_USER, USER


def test_create_account_normalizes_currency(account_service):
    """Test that currency codes are stored uppercase."""
    account_id = account_service.create_account(USER, "  Checking ", "eur")
    account = account_service.get_account(USER, account_id)
    assert account.name == "Checking"
    assert account.currency == "EUR"


@pytest.mark.parametrize("currency", ["", "euro", "12$"])
def test_create_account_rejects_invalid_currency(account_service, currency):
    """Test that invalid currency codes are rejected."""
    with pytest.raises(ValueError, match="Invalid currency code"):
        account_service.create_account(USER, "Checking", currency)


def test_create_account_rejects_empty_name(account_service):
    """Test that an empty name is rejected."""
    with pytest.raises(ValueError, match="cannot be empty"):
        account_service.create_account(USER, "  ", "EUR")


def test_create_account_duplicate_name(account_service):
    """Test that names are unique per user."""
    account_service.create_account(USER, "Checking", "EUR")
    with pytest.raises(ValueError, match="already exists"):
        account_service.create_account(USER, "Checking", "EUR")
    account_service.create_account(OTHER_USER, "Checking", "EUR")


def test_get_account_checks_owner(account_service, eur_account):
    """Test that other users cannot see an account."""
    assert account_service.get_account(USER, eur_account.id) == eur_account
    assert account_service.get_account(OTHER_USER, eur_account.id) is None


def test_resolve_account_by_name_or_id(account_service, eur_account):
    """Test resolving accounts by name and ID."""
    assert account_service.resolve_account(USER, "Checking") == eur_account.id
    assert account_service.resolve_account(USER, str(eur_account.id)) == eur_account.id
    assert account_service.resolve_account(USER, eur_account.id) == eur_account.id


def test_resolve_account_not_found(account_service, eur_account):
    """Test resolving unknown or foreign accounts."""
    with pytest.raises(ValueError, match="not found"):
        account_service.resolve_account(USER, "Nope")
    with pytest.raises(ValueError, match="not found"):
        account_service.resolve_account(OTHER_USER, eur_account.id)
