"""Paired comparisons across replicate runs."""
