"""
Ingest Services

Concrete collaborators for the ingest configuration: MongoDB and pgvector
stores and the persisted query data source. Store modules are imported by
the backend factories only when their family is selected.
"""
