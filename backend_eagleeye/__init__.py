"""
Backend EagleEye: per-tenant error threshold alerting.

Detects when an observed error count crosses the threshold configured for a
(tenant, property, interface, transaction type) identity and emits an alert.
Modular architecture: config ingest, threshold table, membership filter,
breach classifier, alert emitter, and API server.
"""

__version__ = "0.1.0"
