"""
Classes module.

Scope:
- Class CRUD and enable/disable (single, batch, whole week)
- Year schedule generation from the default weekly template
- Housekeeping (delete past classes, clear all, reset capacities)
- Admin roster management (add/remove a client on a class)
"""
