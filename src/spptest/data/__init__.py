"""Curve set folders: manifest, tables and validation."""
