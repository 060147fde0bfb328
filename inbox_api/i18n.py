"""
Translation of the user-facing strings the inbox produces.

Strings live in an in-process catalog keyed by locale. Lookups fall back
to English and then to the key itself, so a missing translation never
breaks a send.
"""

import logging
from typing import Mapping, Optional

from inbox_api.config import settings

logger = logging.getLogger(__name__)

FALLBACK_LOCALE = "en"

CATALOG = {
    "en": {
        "newPMNotificationTitle": "New Message from {name}",
        "newPMEmailSubject": "{name} sent you a private message",
    },
    "de": {
        "newPMNotificationTitle": "Neue Nachricht von {name}",
        "newPMEmailSubject": "{name} hat dir eine private Nachricht geschickt",
    },
    "es": {
        "newPMNotificationTitle": "Nuevo mensaje de {name}",
    },
    "fr": {
        "newPMNotificationTitle": "Nouveau message de {name}",
    },
}


def translate(key: str, params: Optional[Mapping] = None, locale: Optional[str] = None) -> str:
    """
    Look up `key` for `locale` and interpolate `params` into it.

    Unknown placeholders are left as-is rather than raising.
    """
    locale = locale or settings.DEFAULT_LANGUAGE
    template = CATALOG.get(locale, {}).get(key)
    if template is None:
        template = CATALOG[FALLBACK_LOCALE].get(key)
        if template is None:
            logger.warning(f"Missing translation: key={key}, locale={locale}")
            return key

    try:
        return template.format(**(params or {}))
    except KeyError as e:
        logger.warning(f"Missing translation parameter {e} for key={key}")
        return template
