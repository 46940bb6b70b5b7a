"""Shared enums and the error hierarchy."""
