"""Infrastructure layer: concrete adapters for the domain ports."""
