"""Iris HTTP API — the FastAPI app lives in :mod:`iris.api.routes`."""
