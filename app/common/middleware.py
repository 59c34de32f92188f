"""
Contexto de tienda para las rutas de la API
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from uuid import UUID
import logging

logger = logging.getLogger(__name__)

STORE_HEADER = "X-Store-ID"


class StoreMiddleware(BaseHTTPMiddleware):
    """
    Toma la tienda del header X-Store-ID y la deja en request.state.store_id.

    Solo aplica a las rutas bajo `api_prefix`; docs, health y la raíz quedan
    libres. Las consultas de turnos filtran siempre por esta tienda.
    """

    def __init__(self, app, api_prefix: str = "/api/"):
        super().__init__(app)
        self.api_prefix = api_prefix

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or not request.url.path.startswith(self.api_prefix):
            return await call_next(request)

        raw_store_id = request.headers.get(STORE_HEADER)
        if not raw_store_id:
            return self._reject(request, f"Missing {STORE_HEADER} header")

        try:
            store_id = UUID(raw_store_id)
        except ValueError:
            return self._reject(request, f"Invalid {STORE_HEADER} format. Must be a valid UUID")

        request.state.store_id = store_id
        response = await call_next(request)
        response.headers[STORE_HEADER] = str(store_id)
        return response

    @staticmethod
    def _reject(request: Request, detail: str) -> JSONResponse:
        logger.warning(f"{request.method} {request.url.path} rechazado: {detail}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})
