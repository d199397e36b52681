from .bases import ChainReadPort, ChainWritePort, WalletContext, MetadataPublisher

__all__ = [
    "ChainReadPort",
    "ChainWritePort",
    "WalletContext",
    "MetadataPublisher",
]
