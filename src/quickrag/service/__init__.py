"""Service layer - component wiring for the CLI and library users."""

from quickrag.service.components import Components, create_components

__all__ = ["Components", "create_components"]
