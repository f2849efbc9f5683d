"""Peer discovery, directory and alert broadcast."""
from network.directory import NodeDirectory
from network.broadcaster import NotificationBroadcaster, BroadcastResult
from network.discovery import DiscoveryService
