"""Logging configuration helpers."""
import logging
import re

_EMAIL_RE = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)
_PHONE_RE = re.compile(r"(?<![\w.])\+?\d{8,15}\b")
_TOKEN_RE = re.compile(r"(?P<key>(token|bearer)\s*[=: ]\s*)(?P<secret>[A-Za-z0-9._-]{8,})", re.IGNORECASE)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def scrub(value: str) -> str:
    """Mask email addresses, phone numbers and tokens."""
    if not value:
        return value
    value = _EMAIL_RE.sub("<email>", value)
    value = _PHONE_RE.sub("<phone>", value)
    return _TOKEN_RE.sub(lambda m: f"{m.group('key')}<token>", value)


class PiiScrubbingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = scrub(record.getMessage())
        record.args = ()
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_fightbet", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(PiiScrubbingFilter())
    handler._fightbet = True
    root.addHandler(handler)
    root.setLevel(level.upper())
