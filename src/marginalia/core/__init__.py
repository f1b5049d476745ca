"""Configuration, logging and cryptographic primitives."""
