"""Bearer token extraction service for identity-provider protected web apps."""

__version__ = "3.2.0"

SERVICE_NAME = "Epicor Token Extractor"
