import os
import subprocess
import sys

from django.conf import settings


def test_fresh_interpreter_boots_and_checks():
    # a clean process catches import cycles the already-loaded test process cannot
    env = {**os.environ, "DJANGO_SETTINGS_MODULE": "config.settings.test"}
    script = (
        "import django; django.setup(); "
        "from django.core.management import call_command; call_command('check'); "
        "from hms_core.iam.auth import CookieOrHeaderJWTAuthentication; "
        "from hms_core.prescriptions import subscribers"
    )
    proc = subprocess.run(
        [sys.executable, "-c", script],
        cwd=str(settings.BASE_DIR),
        env=env,
        capture_output=True,
        text=True,
        timeout=120,
    )
    assert proc.returncode == 0, proc.stderr
