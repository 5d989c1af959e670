"""registry_server — FastAPI REST API for the registry forms SDK.

Exposes module gating, completed module responses, response submission,
form authoring/versioning, survey preview, and catalog sync as a
stateless HTTP API.
"""
