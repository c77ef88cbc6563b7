"""HTTP API for sealing secrets.

Routes:
    POST /api/seal/opaque            {cluster, name, namespace, data}
    POST /api/seal/dockerconfigjson  {cluster, name, namespace, username, password}
    POST /api/seal/tls               {cluster, namespace, domain}

A successful response is ``{"sealedSecret": "<base64 manifest>"}``.
Undecodable bodies are answered with 403, every other failure with a
generic 500 whose real cause only goes to the server log.
"""

import base64
import binascii
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from icecream import ic
from pydantic import BaseModel, ValidationError, field_validator
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from k8s_sealer import __version__, console
from k8s_sealer.exceptions import MalformedRequestBodyError, SealerError
from k8s_sealer.service import SealService

ERR_INTERNAL = "internal error"

CONTENT_TYPE = "application/json; charset=utf-8"
ACCESS_CONTROL_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Origin, Content-Type, Authorization",
    "Access-Control-Allow-Method": "POST, GET, PUT, PATCH",
}

RequestModel = TypeVar("RequestModel", bound=BaseModel)


class SealOpaqueRequest(BaseModel):
    """Body of POST /api/seal/opaque. Data values are base64 strings."""

    cluster: str = ""
    name: str = ""
    namespace: str = ""
    data: dict[str, bytes] = {}

    @field_validator("data", mode="before")
    @classmethod
    def decode_data(cls, value: Any) -> Any:
        """Decode base64 values, the JSON encoding of byte arrays."""
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value

        decoded: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(item, str):
                raise ValueError(f"value of {key!r} must be a base64 string")
            try:
                decoded[key] = base64.b64decode(item, validate=True)
            except binascii.Error as err:
                raise ValueError(f"illegal base64 data in {key!r}: {err}") from err
        return decoded


class SealDockerconfigjsonRequest(BaseModel):
    """Body of POST /api/seal/dockerconfigjson."""

    cluster: str = ""
    name: str = ""
    namespace: str = ""
    username: str = ""
    password: str = ""


class SealTLSRequest(BaseModel):
    """Body of POST /api/seal/tls."""

    cluster: str = ""
    namespace: str = ""
    domain: str = ""


def error_response(err: Exception, status_code: int) -> JSONResponse:
    """Log an error and build the client-facing error body.

    Internal errors are logged with their cause and hidden from the client.
    """
    console.error(f"http error: {err} (code={status_code})")

    message = ERR_INTERNAL if status_code == 500 else str(err)
    return JSONResponse(
        {"err": message},
        status_code=status_code,
        headers={"Content-Type": CONTENT_TYPE, **ACCESS_CONTROL_HEADERS},
    )


async def decode_body(request: Request, model: type[RequestModel]) -> RequestModel:
    """Decode a JSON request body into a request model.

    Raises:
        MalformedRequestBodyError: If the body is not valid JSON for the model.

    """
    body = await request.body()
    try:
        return model.model_validate_json(body)
    except ValidationError as err:
        details = "; ".join(
            f"{'.'.join(str(loc) for loc in e['loc']) or 'body'}: {e['msg']}" for e in err.errors()
        )
        raise MalformedRequestBodyError(details) from err


async def seal_response(seal: Callable[..., bytes], *args: Any) -> JSONResponse:
    """Run a blocking seal operation off the event loop and wrap its output."""
    sealed_secret = await run_in_threadpool(seal, *args)
    return JSONResponse({"sealedSecret": base64.b64encode(sealed_secret).decode("ascii")})


async def handle_seal_opaque(request: Request) -> JSONResponse:
    """Seal an opaque secret from arbitrary key/value data."""
    req = await decode_body(request, SealOpaqueRequest)
    ic(req.cluster, req.name, req.namespace, list(req.data))
    service: SealService = request.app.state.service
    return await seal_response(service.seal_opaque, req.cluster, req.name, req.namespace, req.data)


async def handle_seal_dockerconfigjson(request: Request) -> JSONResponse:
    """Seal registry credentials as a dockerconfigjson secret."""
    req = await decode_body(request, SealDockerconfigjsonRequest)
    ic(req.cluster, req.name, req.namespace)
    service: SealService = request.app.state.service
    return await seal_response(
        service.seal_dockerconfigjson, req.cluster, req.name, req.namespace, req.username, req.password
    )


async def handle_seal_tls(request: Request) -> JSONResponse:
    """Seal the TLS certificate and key serving a domain."""
    req = await decode_body(request, SealTLSRequest)
    ic(req)
    service: SealService = request.app.state.service
    return await seal_response(service.seal_tls, req.cluster, req.namespace, req.domain)


async def handle_sealer_error(request: Request, exc: Exception) -> JSONResponse:
    """Answer decode errors with 403 and every other sealer error with 500."""
    if isinstance(exc, MalformedRequestBodyError):
        return error_response(exc, 403)
    return error_response(exc, 500)


async def handle_http_error(request: Request, exc: Exception) -> JSONResponse:
    """Answer unmatched routes and methods with an empty object."""
    status_code = exc.status_code if isinstance(exc, StarletteHTTPException) else 500
    return JSONResponse({}, status_code=status_code)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Answer any other failure with a generic 500.

    Starlette serves this response outside the application middleware,
    so the error body carries its own headers.
    """
    return error_response(exc, 500)


async def access_control(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Set the JSON content type and CORS headers on every response."""
    if request.method == "OPTIONS":
        response = Response(status_code=200)
    else:
        response = await call_next(request)

    response.headers["Content-Type"] = CONTENT_TYPE
    response.headers.update(ACCESS_CONTROL_HEADERS)
    return response


def create_app(service: SealService) -> FastAPI:
    """Create the HTTP application serving a seal service.

    Args:
        service: The seal service handling requests.

    Returns:
        The configured FastAPI application.

    """
    app = FastAPI(title="k8s-sealer", version=__version__, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.service = service

    app.add_api_route("/api/seal/opaque", handle_seal_opaque, methods=["POST"])
    app.add_api_route("/api/seal/dockerconfigjson", handle_seal_dockerconfigjson, methods=["POST"])
    app.add_api_route("/api/seal/tls", handle_seal_tls, methods=["POST"])

    app.add_exception_handler(SealerError, handle_sealer_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.middleware("http")(access_control)

    return app
