"""
Visitor fingerprints.

A fingerprint is SHA-256(address), hex-truncated to 16 chars. It is the only
form in which a visitor address is stored or logged.
"""

import hashlib

FINGERPRINT_LENGTH = 16


def hash_address(address: str) -> str:
    return hashlib.sha256(address.encode()).hexdigest()[:FINGERPRINT_LENGTH]
