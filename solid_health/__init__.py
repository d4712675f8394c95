"""solid-health: keep fitness data in sync between Google Fit and a Solid pod."""

__version__ = "0.1.0"
