"""
pr_desk.auth

Authentication/authorization package.

Responsibilities:
- Session token helpers and the session resolver.
- Identity provider adapter (sign-in policy).
- Roles, principal and capability predicate.
"""

# Package marker.
