"""Shared primitives: errors, logging, settings, time helpers."""
