"""Configuration constants for the animation core."""
