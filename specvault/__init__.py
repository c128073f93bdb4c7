"""SpecVault: version history for API specification documents."""

__version__ = "1.0.0"
