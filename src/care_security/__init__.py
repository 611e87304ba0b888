"""Care Security Backend - access policies and access-control for care homes."""

__version__ = "1.0.0"
