"""CareerChat AI - career-counseling chat service and client core."""

__version__ = "1.0.0"
