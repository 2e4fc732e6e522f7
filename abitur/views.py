import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt

from abitur.services.risk import service
from abitur.services.shared.settings import get_api_settings

logger = logging.getLogger(__name__)


def _rid(request) -> str:
    return getattr(request, "request_id", "-")


def _log_extra(request) -> dict:
    return {"request_id": _rid(request)}


def _get_client_ip(request):
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


@csrf_exempt
def risk_report_api(request):
    ip = _get_client_ip(request)
    cfg = get_api_settings()
    if not cfg.enabled:
        return JsonResponse({"status": "error", "error": "Risk API is disabled."}, status=404)
    if request.method != "POST":
        logger.warning(" [RISK API] Method not allowed method=%s ip=%s", request.method, ip, extra=_log_extra(request))
        return JsonResponse({"status": "error", "error": "Method not allowed"}, status=405)
    if len(request.body or b"") > cfg.max_payload_bytes:
        logger.warning(
            " [RISK API] Payload too large bytes=%s max=%s ip=%s",
            len(request.body),
            cfg.max_payload_bytes,
            ip,
            extra=_log_extra(request),
        )
        return JsonResponse({"status": "error", "error": "Payload too large"}, status=413)
    try:
        try:
            raw = request.body.decode("utf-8")
        except UnicodeDecodeError:
            raw = None
        payload = service.build_risk_report_from_blob(raw, request_id=_rid(request))
        status = 200 if payload.get("status") == "success" else 400
        logger.info(" [RISK API] ip=%s status=%s", ip, payload.get("status"), extra=_log_extra(request))
        return JsonResponse(payload, status=status)
    except Exception as e:
        logger.error(f" [RISK API ERROR] ip={ip} err={repr(e)}", extra=_log_extra(request), exc_info=True)
        return JsonResponse({"status": "error", "error": "Internal server error."}, status=500)


@csrf_exempt
def rulesets_api(request):
    if not get_api_settings().enabled:
        return JsonResponse({"status": "error", "error": "Risk API is disabled."}, status=404)
    if request.method != "GET":
        return JsonResponse({"status": "error", "error": "Method not allowed"}, status=405)
    try:
        return JsonResponse(service.list_builtin_rulesets())
    except Exception as e:
        logger.error(f" [RULESETS API ERROR] err={repr(e)}", extra=_log_extra(request), exc_info=True)
        return JsonResponse({"status": "error", "error": "Internal server error."}, status=500)
