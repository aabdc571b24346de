"""Fidelity metrics and population slices."""
