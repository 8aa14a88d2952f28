"""
auth: the session gate in front of search and OAuth.

Provides:
  • Signed bearer token creation & verification
  • Password hashing (bcrypt)
  • Register / Login API routes
  • ``get_current_user_id`` FastAPI dependency
"""
