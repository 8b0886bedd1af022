from sfind.clients.endpoint import SubstreamsEndpoint, auth_headers

__all__ = ["SubstreamsEndpoint", "auth_headers"]
