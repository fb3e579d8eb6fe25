"""Movie Shorts - turns feature films into narrated horizontal and vertical shorts."""

__version__ = "1.0.0"
