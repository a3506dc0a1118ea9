"""Versioned HTTP routes."""
