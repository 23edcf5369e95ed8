"""What happened when an advisory client tried its vendor."""
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Ok:
    response: Any
    kind = 'ok'

    def to_dict(self):
        return {'kind': self.kind}


@dataclass(frozen=True)
class VendorUnavailable:
    """No vendor key configured, so the vendor was never called."""

    kind = 'vendor_unavailable'

    def to_dict(self):
        return {'kind': self.kind}


@dataclass(frozen=True)
class VendorError:
    reason: str
    kind = 'vendor_error'

    def to_dict(self):
        return {'kind': self.kind, 'reason': self.reason}
