"""Application layer: DTOs, ports, engine services and use cases."""
