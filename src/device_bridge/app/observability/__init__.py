"""Logging configuration for the device bridge."""
