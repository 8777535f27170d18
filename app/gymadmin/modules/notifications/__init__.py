"""
Notifications module.

Admin inbox (list, unread count, mark read, delete) plus the fan-out helper
other modules use to notify every admin.
"""
