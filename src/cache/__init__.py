"""Fingerprinting and the fingerprint cache."""
