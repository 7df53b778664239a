"""
pr_desk.security

Request pipeline guards.

Responsibilities:
- Rate limiting (`rate_limit`), input validation/sanitization (`validation`),
  row-level access control (`access`).
"""

# Package marker.
