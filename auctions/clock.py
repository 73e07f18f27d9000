# auctions/clock.py
from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string


def now():
    """Current time as seen by the auction engine.

    ``AUCTION_CLOCK`` may point at any zero-argument callable returning an
    aware datetime; tests patch this function directly.
    """
    path = getattr(settings, 'AUCTION_CLOCK', None)
    if not path or path == 'django.utils.timezone.now':
        return timezone.now()
    return import_string(path)()
