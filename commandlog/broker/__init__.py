"""In-process log service backing the consumer and producer clients."""

from commandlog.broker.service import LogService, close_all_services, get_service

__all__ = ["LogService", "close_all_services", "get_service"]
