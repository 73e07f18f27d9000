from datetime import timedelta
from unittest import mock

from .factories import NOW


class FrozenClockMixin:
    """Pins ``auctions.clock.now`` to ``self.now``; move it with ``advance``."""
    start = NOW

    def setUp(self):
        super().setUp()
        self.now = self.start
        patcher = mock.patch('auctions.clock.now', side_effect=lambda: self.now)
        patcher.start()
        self.addCleanup(patcher.stop)

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now
