"""
Custom middleware components for the remittance hub.

This module defines middleware classes for:
- Security headers
- Request ID generation and tracking
- Request logging
"""
import logging
import time
import uuid

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware:
    """
    Middleware to add security headers to all responses.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        response['X-Content-Type-Options'] = 'nosniff'
        response['X-Frame-Options'] = 'DENY'
        response['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        if request.is_secure():
            response['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        return response


class RequestIDMiddleware:
    """
    Middleware to attach a request ID to each request.

    An incoming X-Request-ID header is reused so a wallet backend can trace
    one transfer across services; otherwise a fresh UUID is generated.
    """

    HEADER = 'HTTP_X_REQUEST_ID'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = request.META.get(self.HEADER) or str(uuid.uuid4())
        request.request_id = request_id

        response = self.get_response(request)

        response['X-Request-ID'] = request_id
        return response


class RequestLoggingMiddleware:
    """
    Middleware to log API requests with method, path, status, latency and request ID.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        start_time = time.monotonic()

        response = self.get_response(request)

        response_time = time.monotonic() - start_time

        # Only log API requests
        if request.path.startswith('/api/'):
            log_data = {
                'method': request.method,
                'path': request.path,
                'status_code': response.status_code,
                'response_time': f"{response_time:.4f}s",
                'client_ip': self._get_client_ip(request),
                'request_id': getattr(request, 'request_id', 'N/A'),
            }

            # Log at different levels based on status code
            if response.status_code >= 500:
                logger.error(f"API Request: {log_data}")
            elif response.status_code >= 400:
                logger.warning(f"API Request: {log_data}")
            else:
                logger.info(f"API Request: {log_data}")

        return response

    def _get_client_ip(self, request):
        """Extract client IP from request"""
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')
