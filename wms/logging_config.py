from __future__ import annotations

import json
import logging
import logging.config
import time
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request

REQUEST_ID_HEADER = 'X-Request-ID'


class JsonFormatter(logging.Formatter):
    """Simple JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        for key in (
            'request_id',
            'path',
            'method',
            'status_code',
            'duration_ms',
            'remote_addr',
            'user_id',
            'entity_type',
            'entity_id',
            'action',
            'username',
            'reason',
            'code',
        ):
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = 'INFO', json_output: bool = True) -> None:
    formatter = 'json' if json_output else 'plain'
    logging.config.dictConfig(
        {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'json': {'()': 'wms.logging_config.JsonFormatter'},
                'plain': {'format': '%(asctime)s %(levelname)s %(name)s %(message)s'},
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'formatter': formatter,
                },
            },
            'root': {'handlers': ['console'], 'level': level},
            'loggers': {
                'api.request': {'handlers': ['console'], 'level': level, 'propagate': False},
                'uvicorn.access': {'handlers': ['console'], 'level': 'WARNING', 'propagate': False},
            },
        }
    )


def install_request_logging(app: FastAPI) -> None:
    """Attach/propagate a request ID and emit one access log line per request."""
    logger = logging.getLogger('api.request')

    @app.middleware('http')
    async def request_log_middleware(request: Request, call_next):
        started_at = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)

        duration_ms = round((time.perf_counter() - started_at) * 1000, 2)
        principal = getattr(request.state, 'principal', None)
        logger.info(
            'request_completed',
            extra={
                'request_id': request_id,
                'method': request.method,
                'path': request.url.path,
                'status_code': response.status_code,
                'duration_ms': duration_ms,
                'remote_addr': request.client.host if request.client else None,
                'user_id': principal.id if principal else None,
            },
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
