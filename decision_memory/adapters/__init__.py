"""Adapters implementing the port protocols."""
