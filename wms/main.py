import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wms.config import settings
from wms.errors import GENERIC_SERVER_ERROR_MESSAGE, WmsError, build_error_envelope
from wms.logging_config import configure_logging, install_request_logging
from wms.routers import auth, catalog, cycle_count, lookups, purchase_orders, receiving, return_requests
from wms.security.headers import install_security_headers

configure_logging(settings.log_level, settings.log_json)
logger = logging.getLogger(__name__)

app = FastAPI(title='WMS Receiving and Cycle Count')

install_security_headers(app)
install_request_logging(app)

app.include_router(auth.router)
app.include_router(purchase_orders.router)
app.include_router(receiving.router)
app.include_router(cycle_count.router)
app.include_router(return_requests.router)
app.include_router(lookups.router)
app.include_router(catalog.router)


def _error_response(status_code: int, code: str, message: str, errors=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=build_error_envelope(code=code, message=message, errors=errors, status_code=status_code),
        headers=headers,
    )


@app.exception_handler(WmsError)
async def wms_error_handler(request: Request, exc: WmsError):
    logger.info(
        'workflow_rejected',
        extra={'code': exc.code, 'path': request.url.path, 'status_code': exc.status_code},
    )
    return _error_response(exc.status_code, exc.code, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {'field': '.'.join(str(part) for part in err.get('loc', ()) if part != 'body'), 'message': err.get('msg')}
        for err in exc.errors()
    ]
    return _error_response(400, 'validation_error', 'Validation failed.', errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = {401: 'not_authenticated', 403: 'permission_denied', 404: 'not_found'}.get(exc.status_code, 'http_error')
    return _error_response(exc.status_code, code, str(exc.detail), headers=getattr(exc, 'headers', None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception('unhandled_exception', extra={'path': request.url.path})
    return _error_response(500, 'internal_server_error', GENERIC_SERVER_ERROR_MESSAGE)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
