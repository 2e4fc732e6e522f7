class EvaluationContextFilter:
    """
    Adds request_id, federal_state and severity to every log record.
    Missing values are filled with '-'.
    """
    def filter(self, record):
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        if not hasattr(record, "federal_state"):
            record.federal_state = "-"
        if not hasattr(record, "severity"):
            record.severity = "-"
        return True
