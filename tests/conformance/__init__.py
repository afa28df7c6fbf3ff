"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the cap-table ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. supply.py - Issuance accounting and conservation of held shares
2. atomicity.py - All-or-nothing operations, including the token pull
3. authorization.py - Owner-only administration
4. determinism.py - Reproducible behavior, replay and clone

These tests use hypothesis for property-based testing.
"""
