import time

from blogauth.config import settings
from blogauth.services.captcha_service import CaptchaService, CaptchaStore, random_text, render_png


def _service(text="AB12", ttl=300):
    return CaptchaService(CaptchaStore(ttl_seconds=ttl), text_factory=lambda: text, renderer=lambda t: b"img")


def test_verify_is_case_insensitive():
    service = _service()
    issued = service.issue()
    assert service.verify(issued.challenge_id, "ab12")


def test_challenge_is_consumed_on_success():
    service = _service()
    issued = service.issue()
    assert service.verify(issued.challenge_id, "AB12")
    assert not service.verify(issued.challenge_id, "AB12")


def test_challenge_is_consumed_on_failure():
    service = _service()
    issued = service.issue()
    assert not service.verify(issued.challenge_id, "ZZZZ")
    assert not service.verify(issued.challenge_id, "AB12")
    assert len(service.store) == 0


def test_missing_challenge_or_response_fails():
    service = _service()
    issued = service.issue()
    assert not service.verify(None, "AB12")
    assert not service.verify("unknown-id", "AB12")
    assert not service.verify(issued.challenge_id, "")


def test_non_ascii_response_is_a_plain_mismatch():
    service = _service()
    issued = service.issue()
    assert not service.verify(issued.challenge_id, "ÄB12")


def test_each_issue_gets_its_own_challenge():
    service = _service()
    first = service.issue()
    second = service.issue()
    assert first.challenge_id != second.challenge_id
    assert service.verify(second.challenge_id, "AB12")
    assert service.verify(first.challenge_id, "AB12")


def test_expired_challenge_fails(monkeypatch):
    service = _service(ttl=300)
    issued = service.issue()
    real_time = time.time
    monkeypatch.setattr(time, "time", lambda: real_time() + 301)
    assert not service.verify(issued.challenge_id, "AB12")


def test_random_text_uses_configured_charset():
    text = random_text(settings.CAPTCHA_LENGTH, settings.CAPTCHA_CHARSET)
    assert len(text) == 4
    assert set(text) <= set(settings.CAPTCHA_CHARSET)


def test_render_png_produces_png_bytes():
    assert render_png("AB12").startswith(b"\x89PNG")
