"""EventPulse: realtime coordination backend for staff at mass events."""

__version__ = "1.0.0"
