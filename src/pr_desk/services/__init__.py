"""
pr_desk.services

Service layer.

Responsibilities:
- Business operations that sit between routers and upstream clients.
"""

# Package marker.
