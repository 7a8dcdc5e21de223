"""
REST API for the enrichment service.

- Batch and single-product enrichment triggers
- Latest run status
- Approval and rejection of pending proposals
- Per-shop schedule configuration

All endpoints require the internal API key.
"""
