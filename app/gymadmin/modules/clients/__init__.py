"""
Clients module.

Scope:
- Client list with current package summary and derived status
- Package assignment (one active package per client)
- Class count / expiration adjustments, renewal reminders
"""
