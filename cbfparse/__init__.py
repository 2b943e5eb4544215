"""Read CBF diagnostic description files and export their ECU definitions as JSON."""

__version__ = "0.1.0"