"""Shared logging, error and settings plumbing."""
