"""carotate -- CA chain construction and generation-tracked rotation."""

__version__ = "1.0.0"
