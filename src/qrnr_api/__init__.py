"""QRNR ordering API (Flask)."""
