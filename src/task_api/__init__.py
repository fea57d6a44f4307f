"""
Task Tracker backend package.

The ASGI application lives in `task_api.main` (`task_api.main:app`); build a
custom instance with `task_api.main.create_app`.
"""

__version__ = "0.1.0"
