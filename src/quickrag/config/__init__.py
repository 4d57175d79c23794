"""Configuration: schema (quickrag.config.schema) and loading (quickrag.config.loader)."""
