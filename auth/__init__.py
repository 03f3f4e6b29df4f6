"""
auth — account linking for external identity providers.

Provides:
  • ``login_with_provider`` / ``join_with_provider``
  • Signed login tokens
  • ``db_session`` FastAPI dependency
"""
