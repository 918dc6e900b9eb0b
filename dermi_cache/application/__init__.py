"""Application layer: FastAPI app, HTTP API and cached AI services."""
