"""
Middleware stamping each request with its correlation data.
"""

from starlette.middleware.base import BaseHTTPMiddleware

from app.core.ip import extract_client_ip
from app.core.request_meta import build_request_meta, request_id_for


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Stores request_id, client_ip and request_meta on request.state before any
    route dependency runs. The id is echoed back as X-Request-Id so a client
    can quote it when reporting a failed login or refresh.
    """

    async def dispatch(self, request, call_next):
        request_id = request_id_for(request)
        client_ip = extract_client_ip(request)
        request.state.request_id = request_id
        request.state.client_ip = client_ip
        request.state.request_meta = build_request_meta(
            request, request_id=request_id, client_ip=client_ip
        )

        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response
