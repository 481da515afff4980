"""Source attribution overlay for synthesized stylesheets."""

__version__ = "0.1.0"
