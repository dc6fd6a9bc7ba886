"""Herald: templated message delivery with guaranteed eventual delivery."""

__version__ = "1.0.0"
