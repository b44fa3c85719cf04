"""Device-side building blocks for MeshCore mesh networks: ACK tracking,
peer keep-alive, advert scheduling, contacts and advert processing."""

__version__ = "0.1.0"

__all__ = [
    "ack",
    "advert_processing",
    "connection",
    "contact",
    "contact_manager",
    "scheduler",
]