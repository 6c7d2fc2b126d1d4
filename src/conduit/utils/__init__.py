"""Utility helpers for conduit."""
