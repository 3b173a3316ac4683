"""Live camera source (needs the `live` extra; import recognizer_source directly)."""
