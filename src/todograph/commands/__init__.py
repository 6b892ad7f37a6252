"""Command modules for the todograph CLI."""
