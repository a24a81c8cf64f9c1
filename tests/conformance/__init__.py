"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the token ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_conservation.py - balance == Σ transaction amounts, never negative
2. test_idempotency.py - Wallet initialization only creates once
3. test_order_totals.py - Order totals equal Σ price × quantity
4. test_atomicity.py - No order without its debit, no debit without its order

These tests use hypothesis for property-based testing.
"""
