"""Air Agent command line interface."""
