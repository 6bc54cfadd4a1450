"""HTTP surface: FastAPI app, auth provider and feature flags."""
