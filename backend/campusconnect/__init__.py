"""CampusConnect backend: accounts, friend requests and real-time messaging."""

__version__ = "0.1.0"
