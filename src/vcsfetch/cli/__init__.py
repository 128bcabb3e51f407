"""vcsfetch command line interface."""
