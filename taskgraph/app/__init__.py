"""Application factory and service wiring."""
