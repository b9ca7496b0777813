"""Settlement-layer primitives: codecs, withdrawal proofs, contracts and a block tree."""

__version__ = "0.1.0"