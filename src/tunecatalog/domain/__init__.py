"""Domain layer: entities, ports, value objects and exceptions."""
