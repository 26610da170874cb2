# organizer/__init__.py
"""Family organizer: calendar with recurrence, weekly boards and notes."""

__version__ = "0.1.0"
