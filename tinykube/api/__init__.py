"""API objects, validation, HTTP handlers and the WSGI API server."""