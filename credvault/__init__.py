"""
CredVault Credential Manager
Copyright (c) 2025

Desktop client for a hosted credential store. Credentials are kept in the
project's `credentials` table, where row-level policies limit every row to
the account that created it. Passwords are stored as entered so they can be
shown and copied again; protect the backend project accordingly.
"""
