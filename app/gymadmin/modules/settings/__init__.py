"""Studio settings module (general / notifications / packages sections)."""
