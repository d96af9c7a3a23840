"""Host API 핸들러 패키지"""

from host.api.handler.database import DatabaseHandler

__all__ = ['DatabaseHandler']
