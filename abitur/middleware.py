import time
import uuid
import logging

logger = logging.getLogger("request")


class RequestContextMiddleware:
    """
    Tags each request with a short request_id and writes one access log line:
    HTTP METHOD PATH -> STATUS (ms) ip
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.request_id = uuid.uuid4().hex[:10]
        t0 = time.time()
        response = None
        try:
            response = self.get_response(request)
            response["X-Request-ID"] = request.request_id
            return response
        finally:
            dur_ms = int((time.time() - t0) * 1000)
            status = getattr(response, "status_code", 500)
            ip = request.META.get("HTTP_X_FORWARDED_FOR") or request.META.get("REMOTE_ADDR") or "-"
            ip = ip.split(",")[0].strip() if ip else "-"
            logger.info(
                "HTTP %s %s -> %s (%sms) ip=%s",
                request.method,
                request.path,
                status,
                dur_ms,
                ip,
                extra={"request_id": request.request_id},
            )
