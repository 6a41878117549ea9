"""HTTP plumbing for the API: routing, entity decoding and response helpers."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Callable, Iterable

from werkzeug.exceptions import HTTPException
from werkzeug.routing import Map, Rule
from werkzeug.wrappers import Request, Response

from tinykube.api.types import from_dict, to_dict

log = logging.getLogger(__name__)

MIME_JSON = "application/json"

_PATH_PARAM = re.compile(r"\{(\w+)\}")


class NotFoundError(LookupError):
    """The requested resource does not exist."""


class AlreadyExistsError(Exception):
    """A resource with the same name already exists."""


class InvalidError(ValueError):
    """A resource, or the request carrying it, is not valid."""


def write_response(status: int, entity: Any = None) -> Response:
    """A JSON response holding ``entity``, or an empty one when it is None."""
    if entity is None:
        return Response(status=int(status))
    return Response(
        json.dumps(to_dict(entity)), status=int(status), mimetype=MIME_JSON
    )


def write_error(status: int, err: BaseException) -> Response:
    """A plain-text response carrying the error message."""
    return Response(str(err), status=int(status), mimetype="text/plain")


def read_entity(request: Request, kind: type) -> Any:
    """Decode the JSON body of ``request`` into a resource of type ``kind``."""
    try:
        data = json.loads(request.get_data(as_text=True))
        return from_dict(kind, data)
    except (ValueError, TypeError, KeyError) as err:
        raise InvalidError(f"unable to read entity: {err}") from err


@dataclass(frozen=True)
class _Route:
    method: str
    path: str
    endpoint: Callable[..., Response]
    load: Callable[..., Any] | None


class WebService:
    """A WSGI application serving JSON routes under a common root path.

    A route with a ``load`` callable first loads the resource named by the
    path parameters; the endpoint then receives it after the request.
    """

    def __init__(self, root: str = "/api/v1") -> None:
        self.root = root.rstrip("/")
        self._routes: list[_Route] = []
        self._map: Map | None = None

    def route(
        self,
        method: str,
        path: str,
        endpoint: Callable[..., Response],
        load: Callable[..., Any] | None = None,
    ) -> None:
        self._routes.append(_Route(method.upper(), self.root + path, endpoint, load))
        self._map = None

    def routes(self) -> list[tuple[str, str]]:
        """Every registered route as a (path, method) pair."""
        return [(r.path, r.method) for r in self._routes]

    def _url_map(self) -> Map:
        if self._map is None:
            self._map = Map(
                [
                    Rule(
                        _PATH_PARAM.sub(r"<\1>", r.path),
                        methods=[r.method],
                        endpoint=index,
                    )
                    for index, r in enumerate(self._routes)
                ]
            )
        return self._map

    def _dispatch(self, route: _Route, request: Request, args: dict[str, Any]) -> Response:
        if route.load is None:
            return route.endpoint(request)
        try:
            resource = route.load(**args)
        except NotFoundError as err:
            return write_error(HTTPStatus.NOT_FOUND, err)
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return route.endpoint(request, resource)

    def __call__(self, environ: dict[str, Any], start_response: Callable) -> Iterable[bytes]:
        request = Request(environ)
        adapter = self._url_map().bind_to_environ(environ)
        try:
            index, args = adapter.match()
        except HTTPException as exc:
            return exc(environ, start_response)
        try:
            response = self._dispatch(self._routes[index], request, args)
        except Exception as err:
            log.exception("unhandled error serving %s", request.path)
            response = write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return response(environ, start_response)