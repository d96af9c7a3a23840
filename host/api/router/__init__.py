"""Host API 라우터 패키지"""

from host.api.router.api import router, database_error_handler

__all__ = ['router', 'database_error_handler']
