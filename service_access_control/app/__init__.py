"""
Access Control Service package.

This package stores access policies on a transactional key-value ledger,
binds them to pre-existing device records, and validates access requests
against them. It provides:

- app.main: HTTP surface submitting one ledger invocation per request.
- app.contract: The exposed operations over an explicit transaction.
- app.policies: Policy/device models, store, index and validator.
- app.ledger: Ledger port, canonical encoding, reference ledger host.

Guidelines:
- Every operation runs inside one ledger transaction; raise to abort.
- Canonicalize every record before writing it.
- Validation only reads; it never mutates policies or devices.
"""
