"""Domain layer: entities, value objects and collaborator interfaces."""
