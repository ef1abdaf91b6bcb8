"""Job board platform: auth service, shared auth utilities and API gateway."""

__version__ = "1.0.0"
