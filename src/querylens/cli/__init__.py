"""QueryLens command-line interface."""
