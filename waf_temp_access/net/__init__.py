from .public_ip import DEFAULT_ENDPOINTS, ResolverError, resolve_public_ip
