"""Explainable, risk-scored shortlists for bonding-curve launchpad tokens."""

__version__ = "0.1.0"
