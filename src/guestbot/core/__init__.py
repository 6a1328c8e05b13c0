"""Core configuration, errors and pure security scanners."""
