"""CheckTheCrowd: wallet-signed token votes without on-chain transactions."""

__version__ = "0.1.0"
