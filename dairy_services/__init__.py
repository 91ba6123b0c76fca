"""
Dairy Services -- the imperative shell around the engines.

Each service owns its transaction boundary: one commit per customer,
invoice or cow, and a rollback of just that unit when it fails.  Batch
operations never raise; they return frozen result DTOs with counts and
an ``errors`` tuple.
"""
