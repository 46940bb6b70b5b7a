"""carotate CLI package."""
