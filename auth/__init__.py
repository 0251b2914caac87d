"""
auth: user authentication module.

Provides:
  • JWT creation & verification, one secret per token type
  • Password hashing (keyed HMAC-SHA256)
  • Refresh-token store with atomic revocation
  • Session issuance service (register / login / refresh / verify / reset)
  • FastAPI dependencies that decode tokens into an ``AuthContext``
"""
