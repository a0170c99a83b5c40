"""API routes, request/response models and middleware."""
