import json
import sys
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from abitur.services.risk.service import build_risk_report_from_blob


class Command(BaseCommand):
    help = "Evaluate a serialized Abitur profile (JSON file or '-' for stdin) and print the risk report"

    def add_arguments(self, parser):
        parser.add_argument("path", help="Path to the profile JSON, or '-' to read stdin")
        parser.add_argument("--indent", type=int, default=2, help="JSON indent for the printed report")

    def _read(self, path: str):
        if path == "-":
            return sys.stdin.read()
        try:
            return Path(path).read_text(encoding="utf-8")
        except (FileNotFoundError, IsADirectoryError, UnicodeDecodeError):
            return None

    def handle(self, *args, **options):
        payload = build_risk_report_from_blob(self._read(options["path"]), request_id="cli")
        if payload.get("status") != "success":
            lines = [payload.get("error", "Profile is invalid.")]
            for v in payload.get("violations") or []:
                lines.append(f"  {v['path']}: {v['message']} [{v['code']}]")
            raise CommandError("\n".join(lines))

        indent = options["indent"] if options["indent"] > 0 else None
        self.stdout.write(json.dumps(payload["report"], indent=indent, ensure_ascii=False))
