"""Bookings module: read-only admin view over class reservations."""
