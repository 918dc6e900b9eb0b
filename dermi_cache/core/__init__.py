"""Core layer: configuration, logging, exceptions and key derivation."""
