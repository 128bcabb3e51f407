"""vcsfetch: locate and check out the sources of software packages."""

__version__ = "0.1.0"
