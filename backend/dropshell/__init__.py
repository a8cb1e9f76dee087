"""Dropshell: ephemeral, optionally password-protected file sharing."""

__version__ = "1.0.0"
