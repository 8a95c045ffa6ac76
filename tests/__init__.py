"""
etcd SDK test suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (SDK over the in-memory store)
- e2e/: End-to-end tests (real etcd, ETCD_SDK_E2E_TESTS=1)
"""
