import pytest


@pytest.fixture(autouse=True)
def _test_environment(settings, tmp_path):
    # Cookies are secure by default in settings; the test client speaks plain http
    settings.SECURE_SSL_REDIRECT = False
    settings.SESSION_COOKIE_SECURE = False
    settings.CSRF_COOKIE_SECURE = False
    settings.SECURE_HSTS_SECONDS = 0

    # Uploaded photos, certificates and rendered PDFs stay out of the repo
    settings.MEDIA_ROOT = str(tmp_path / "media")

    settings.WORKFLOW_EMAIL_NOTIFICATIONS = False
