"""FastAPI request handlers."""

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse

from core.exceptions import ForwardError
from core.protocols import RequestLogger
from services.upstream import ROUTE_NAME


async def handle_forward(request: Request, logger: RequestLogger) -> Response:
    """Forward the request, turning forwarding errors into 502 and faults into 500.

    This is the only fault barrier: nothing below it catches broad exceptions.
    Nothing has been sent to the caller until a response is returned here, so
    an error response is always well formed.
    """
    try:
        forwarder = request.app.state.forwarder
        return await forwarder.forward(request, logger)
    except ForwardError as e:
        logger.log_error(ROUTE_NAME, e.status_code, str(e))
        return PlainTextResponse(f"Proxy Error: {e}", status_code=e.status_code)
    except Exception as e:
        message = f"Recovered from fault: {type(e).__name__}: {e}"
        logger.log_error(ROUTE_NAME, 500, message)
        return PlainTextResponse(message, status_code=500)
