"""Capability resolution, validation and init-script assembly."""
