"""
Key hasher: composite identity -> fixed-width digest.

The digest is the first 8 bytes of SHA-256 over the canonical identity string,
rendered as 16 lowercase hex characters. It is the lookup key everywhere
downstream (membership filter, threshold table, config and alert records), so
algorithm, truncation, field order, and delimiter are part of the wire contract.

Canonical identity string: ``propertyId;tenantId;transactionType;interfaceId``
(the same composite key the observation intake accepts).
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

IDENTITY_DELIMITER = ";"
DIGEST_BYTES = 8
DIGEST_HEX_LEN = DIGEST_BYTES * 2


@dataclass(frozen=True)
class Identity:
    """Composite identity of a monitored (tenant, property, interface, type) combination."""

    tenant_id: str
    property_id: str
    interface_id: str
    transaction_type: str

    def canonical(self) -> str:
        return IDENTITY_DELIMITER.join(
            (self.property_id, self.tenant_id, self.transaction_type, self.interface_id)
        )


def hash_composite_key(composite_key: str) -> str:
    """Return the 16-hex-char digest of an already-canonical composite key string."""
    raw = hashlib.sha256(composite_key.encode("utf-8")).digest()
    return raw[:DIGEST_BYTES].hex()


def hash_identity(identity: Identity) -> str:
    """Deterministic digest for an identity; empty components are hashed as-is."""
    return hash_composite_key(identity.canonical())


def parse_composite_key(composite_key: str) -> Identity | None:
    """
    Split ``propertyId;tenantId;type;interface`` into an Identity.

    Returns None when the key does not have exactly four fields; callers still
    hash the raw string in that case.
    """
    parts = composite_key.split(IDENTITY_DELIMITER)
    if len(parts) != 4:
        return None
    property_id, tenant_id, transaction_type, interface_id = parts
    return Identity(
        tenant_id=tenant_id,
        property_id=property_id,
        interface_id=interface_id,
        transaction_type=transaction_type,
    )


def is_digest(value: str) -> bool:
    if len(value) != DIGEST_HEX_LEN:
        return False
    return all(c in "0123456789abcdef" for c in value)
