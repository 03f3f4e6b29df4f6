"""
providers — external identity providers for the login gateway.

Each provider is an ``OAuth2Strategy`` plus a login/callback route pair.
A provider registers only when its configuration is complete.
"""
