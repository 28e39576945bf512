from storegate.middleware.security import SecurityHeadersMiddleware, get_client_ip, is_trusted_proxy

__all__ = ["SecurityHeadersMiddleware", "get_client_ip", "is_trusted_proxy"]
