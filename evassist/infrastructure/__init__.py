"""Infrastructure layer: upstream charging-network access and session storage."""
