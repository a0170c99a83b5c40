"""HTTP surface: FastAPI app, routes and the service container."""
