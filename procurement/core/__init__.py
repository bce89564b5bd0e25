"""Domain layer: identity, authorization policy, user lifecycle and request versioning."""
