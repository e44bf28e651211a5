"""Domain layer - errors, value objects and the services built on them."""
