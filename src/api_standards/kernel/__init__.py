"""Kernel – errors, domain events and security primitives shared by every layer."""
