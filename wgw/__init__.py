"""What's Going Well entry-creation pipeline."""

__version__ = "0.1.0"
