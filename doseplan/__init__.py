"""Peptide dose scheduling and inventory forecasting."""

__version__ = "0.1.0"
