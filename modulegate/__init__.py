"""modulegate - Module sequencing and completion-requirement evaluation."""

__version__ = "0.1.0"
