"""jobq command-line interface."""
