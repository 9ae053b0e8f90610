"""
API server package: HTTP interface over the alerting engine.

Accepts error-count observations and returns a classification; exposes
administrative controls (fallback/test mode, threshold publishing) and health.
"""
