"""Connectors: one adapter per content platform, dispatched by source type."""

from src.providers.connectors.base import BaseConnector, ConnectorContext
from src.providers.connectors.confluence import ConfluenceConnector
from src.providers.connectors.document_connector import DocumentConnector
from src.providers.connectors.dropbox import DropboxConnector
from src.providers.connectors.github import GitHubConnector
from src.providers.connectors.google_drive import GoogleDriveConnector
from src.providers.connectors.notion import NotionConnector
from src.providers.connectors.registry import ConnectorRegistry, UnsupportedConnector
from src.providers.connectors.sharepoint import SharePointConnector
from src.providers.connectors.simulated import SimulatedConnector
from src.providers.connectors.website_crawler import OriginRateLimiter, WebsiteCrawlerConnector

__all__ = [
    "BaseConnector",
    "ConfluenceConnector",
    "ConnectorContext",
    "ConnectorRegistry",
    "DocumentConnector",
    "DropboxConnector",
    "GitHubConnector",
    "GoogleDriveConnector",
    "NotionConnector",
    "OriginRateLimiter",
    "SharePointConnector",
    "SimulatedConnector",
    "UnsupportedConnector",
    "WebsiteCrawlerConnector",
]
