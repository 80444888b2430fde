# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication.

This package provides:
- Password hashing/verification (argon2) and local registration/login
- Google and Facebook sign-in linked to a single account
- Server-side sessions behind signed cookies (itsdangerous)
"""
