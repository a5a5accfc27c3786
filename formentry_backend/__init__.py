"""Backend for the form entry queue download endpoint.

Route handlers in server.py stay thin; this package holds:
- record lookup across the pending queue, archive and error stores
- ZIP export of a record id range
- file-backed web sessions with TTL cleanup

Session IDs are capability tokens (unguessable UUID4). Anyone holding the
session cookie acts as the bound user, so never log them.
"""
