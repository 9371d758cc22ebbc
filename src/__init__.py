"""digitaldna - staged enrichment of personal data exports."""

__version__ = "0.1.0"
