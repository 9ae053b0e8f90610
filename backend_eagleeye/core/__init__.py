"""
Core utilities: key hashing and application exceptions.

Shared by the threshold table, ingest loop, classifier, emitter, and API server.
"""
