# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Exceptions raised by the account and secret layers."""


class SavError(RuntimeError):
    """Base class for all errors raised by this package."""


class DuplicateUsername(SavError):
    """A local account with that username already exists."""


class AuthenticationFailed(SavError):
    """Failed to authenticate with the provided credentials.

    Deliberately does not say whether the username or the password was wrong.
    """


class ProviderExchangeFailed(SavError):
    """The external provider could not produce a subject id."""


class UnknownProvider(ProviderExchangeFailed):
    """No identity provider is registered under that name."""


class AccountNotFound(SavError):
    """Account does not exist."""


class DecryptionFailed(SavError):
    """Ciphertext is malformed or was produced with another key."""


class StorageUnavailable(SavError):
    """The persistence backend could not be reached or failed."""
