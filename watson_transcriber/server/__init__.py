"""HTTP API package — FastAPI app, job cache, and request/response models."""
