"""
Storage Package.

This package manages all data persistence.

Modules:
- database: Engine, sessions and transaction boundaries
- models/: ORM models
- repositories/: Data access layer
"""
