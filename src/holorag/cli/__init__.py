"""holorag command-line interface."""
