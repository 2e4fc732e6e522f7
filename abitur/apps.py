from django.apps import AppConfig


class AbiturConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "abitur"
    verbose_name = "Abitur risk engine"

    def ready(self):
        # Load packaged rule sets once and lock the check registry before any request runs.
        from abitur.academic.rulesets import builtin_rulesets
        from abitur.academic.trap_detector import registry

        builtin_rulesets()
        registry.freeze()
