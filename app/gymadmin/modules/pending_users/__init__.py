"""Pending users module: approve or decline newly registered accounts."""
