"""Ports, shared models and the in-process event bus."""
