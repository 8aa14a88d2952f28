"""
connectors — OAuth integration module for Slack, Notion and Google Drive.

Handles:
  • OAuth2 auth-URL generation with a signed state
  • Callback handling (code → token exchange)
  • Per-user credential storage (one row per provider, last write wins)
  • Google access-token refresh
  • Fernet encryption of tokens at rest
"""
