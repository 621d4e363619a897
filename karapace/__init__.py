"""Remote store client, registry, base image handling, desktop launchers and BLAKE3 hashing for deterministic environments."""

__version__ = "0.1.0"