"""Figures for curve sets and envelope results."""
