"""In-memory simulation of runtime pallets, an ERC-20 contract and an off-chain worker."""

__version__ = "0.1.0"