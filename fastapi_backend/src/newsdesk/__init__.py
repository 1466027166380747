"""
Newsdesk API package.

Modules:
- settings: environment-driven configuration and logging setup
- db: MongoDB connection cache (retry/backoff) + query helpers
- documents: stored document models and the model registry
- auth_utils: password hashing, admin JWT auth, shared-secret and permission checks
- schemas: Pydantic request models for the REST API
- main: FastAPI application and routes
"""
