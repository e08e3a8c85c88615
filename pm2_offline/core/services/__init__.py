"""Core services — manifest reading, classification, version checks."""
