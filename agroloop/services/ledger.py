"""Per-user activity ledger and the eco-credit counters derived from it."""
import time
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from agroloop.errors import StorageError, ValidationError
from agroloop.utils import utc_now

logger = structlog.get_logger()

WASTE_LOG = 'waste_log'
DISEASE_DETECTION = 'disease_detection'
REWARD_REDEMPTION = 'reward_redemption'
ACTIVITY_TYPES = (WASTE_LOG, DISEASE_DETECTION, REWARD_REDEMPTION)

OPTIONAL_FIELDS = {
    'severity': 'severity',
    'verificationCode': 'verification_code',
    'wasteType': 'waste_type',
    'quantity': 'quantity',
    'location': 'location',
}


@dataclass(frozen=True)
class Activity:
    id: str
    type: str
    title: str
    date: str
    credits: Optional[int] = None
    severity: Optional[str] = None
    verification_code: Optional[str] = None
    waste_type: Optional[str] = None
    quantity: Optional[float] = None
    location: Optional[str] = None

    @property
    def counts_as_waste_logged(self):
        return self.type == WASTE_LOG and self.credits is not None and self.credits > 0

    def to_dict(self):
        data = {'id': self.id, 'type': self.type, 'title': self.title, 'date': self.date}
        if self.credits is not None:
            data['credits'] = self.credits
        for key, attr in OPTIONAL_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data['id']),
            type=data['type'],
            title=data['title'],
            date=data['date'],
            credits=data.get('credits'),
            **{attr: data.get(key) for key, attr in OPTIONAL_FIELDS.items()},
        )


@dataclass
class LedgerSummary:
    total_entries: int
    eco_credits: int
    waste_logged: int
    monthly_earnings: int
    disease_scans: int

    def to_dict(self):
        return {
            'totalEntries': self.total_entries,
            'ecoCredits': self.eco_credits,
            'wasteLogged': self.waste_logged,
            'monthlyEarnings': self.monthly_earnings,
            'diseaseScans': self.disease_scans,
        }


def aggregate(activities):
    """Replay the counter rules over ``activities``: (eco_credits, waste_logged)."""
    eco_credits = sum(a.credits for a in activities if a.credits is not None)
    waste_logged = sum(1 for a in activities if a.counts_as_waste_logged)
    return eco_credits, waste_logged


@dataclass
class ActivityLedger:
    """Append-only, newest-first list of one user's activities.

    ``eco_credits`` and ``waste_logged`` are a persisted cache of
    :func:`aggregate` over the list and are always written together with it.
    """

    scope: object
    clock: object = utc_now
    activities: List[Activity] = field(default_factory=list, init=False)
    eco_credits: int = field(default=0, init=False)
    waste_logged: int = field(default=0, init=False)
    _last_id: int = field(default=0, init=False, repr=False)

    def __post_init__(self):
        self.load()

    @property
    def user_id(self):
        return self.scope.user_id

    def load(self):
        try:
            self.activities = [Activity.from_dict(a) for a in self.scope.get_json('activities', [])]
            self.waste_logged = int(self.scope.get_json('wasteLogged', 0))
            self.eco_credits = int(self.scope.get_json('ecoCredits', 0))
        except (StorageError, KeyError, TypeError, ValueError) as e:
            logger.error("Error loading activities", user_id=self.user_id, error=str(e))
            self.activities, self.waste_logged, self.eco_credits = [], 0, 0

    def append(self, type, title, credits=None, **fields):
        if type not in ACTIVITY_TYPES:
            raise ValidationError('type', f"type must be one of {', '.join(ACTIVITY_TYPES)}")
        if not title:
            raise ValidationError('title', "title is required")
        if credits is not None and (isinstance(credits, bool) or not isinstance(credits, int)):
            raise ValidationError('credits', "credits must be an integer")
        unknown = set(fields) - set(OPTIONAL_FIELDS.values())
        if unknown:
            raise ValidationError(sorted(unknown)[0], f"unexpected field: {sorted(unknown)[0]}")

        activity = Activity(
            id=self._next_id(),
            type=type,
            title=title,
            date=self.clock().date().isoformat(),
            credits=credits,
            **fields,
        )
        activities = [activity] + self.activities
        eco_credits = self.eco_credits + (credits or 0)
        waste_logged = self.waste_logged + (1 if activity.counts_as_waste_logged else 0)

        self.scope.set_many_json({
            'activities': [a.to_dict() for a in activities],
            'wasteLogged': waste_logged,
            'ecoCredits': eco_credits,
        })
        self.activities, self.eco_credits, self.waste_logged = activities, eco_credits, waste_logged
        logger.info("Activity recorded", user_id=self.user_id, type=type, credits=credits)
        return activity

    def clear(self):
        self.activities, self.waste_logged, self.eco_credits = [], 0, 0
        self.scope.remove('activities', 'wasteLogged', 'ecoCredits')
        logger.info("Activities cleared", user_id=self.user_id)

    def by_type(self, type):
        return [a for a in self.activities if a.type == type]

    @property
    def total_entries(self):
        return len(self.activities)

    @property
    def monthly_earnings(self):
        return sum(a.credits for a in self.activities if a.counts_as_waste_logged)

    @property
    def disease_scans(self):
        return len(self.by_type(DISEASE_DETECTION))

    def recompute(self):
        return aggregate(self.activities)

    def summary(self):
        return LedgerSummary(
            total_entries=self.total_entries,
            eco_credits=self.eco_credits,
            waste_logged=self.waste_logged,
            monthly_earnings=self.monthly_earnings,
            disease_scans=self.disease_scans,
        )

    def _next_id(self):
        # Millisecond timestamps, bumped when two entries land in the same ms
        stamp = max(int(time.time() * 1000), self._last_id + 1)
        if self.activities:
            try:
                stamp = max(stamp, int(self.activities[0].id) + 1)
            except ValueError:
                pass
        self._last_id = stamp
        return str(stamp)
