"""
Privileges service package.

Decides whether a user holds a granted privilege described by
(name, component, group, role), where granted fields may be wildcards.

- app.privileges: Privilege model, sanitizer/validator and matching engine.
- app.storage: Storage port and its in-memory and Redis adapters.
- app.groups: Optional group hierarchy collaborator.
- app.main: HTTP surface for checks, grants and role bookkeeping.

Guidelines:
- The engine is stateless; all persisted state belongs to the storage adapter.
- Checks never raise on an invalid user id, they deny.
"""
