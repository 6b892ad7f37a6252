"""Utility helpers for the todograph CLI."""
