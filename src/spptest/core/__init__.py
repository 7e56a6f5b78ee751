"""Configuration, registry, result types and run orchestration."""
