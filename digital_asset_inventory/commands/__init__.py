"""Command line utilities for the digital asset inventory."""
