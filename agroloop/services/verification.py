"""Verification code registry.

An operator issues a short numeric code attesting a farmer's waste
submission; the farmer later redeems it once to claim credits. Codes live in a
single global list under ``verification_codes``.
"""
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

import structlog

from agroloop.errors import StorageError, ValidationError
from agroloop.utils import from_iso, to_iso, utc_now

logger = structlog.get_logger()

STORAGE_KEY = 'verification_codes'
CODE_TTL = timedelta(hours=24)
CODE_MIN, CODE_MAX = 1, 100


@dataclass
class VerificationRequest:
    waste_type: str
    quantity: float
    location: str
    farmer_id: str

    @classmethod
    def from_dict(cls, data):
        return cls(
            waste_type=data.get('wasteType'),
            quantity=data.get('quantity'),
            location=data.get('location'),
            farmer_id=data.get('farmerId'),
        )


@dataclass
class VerificationCode:
    id: str
    code: str
    waste_type: str
    quantity: float
    location: str
    farmer_id: str
    created_at: datetime
    expires_at: datetime
    is_used: bool = False
    used_at: Optional[datetime] = None

    def is_expired(self, now):
        return self.expires_at <= now

    def is_active(self, now):
        return not self.is_used and not self.is_expired(now)

    def to_dict(self):
        data = {
            'id': self.id,
            'code': self.code,
            'wasteType': self.waste_type,
            'quantity': self.quantity,
            'location': self.location,
            'farmerId': self.farmer_id,
            'createdAt': to_iso(self.created_at),
            'expiresAt': to_iso(self.expires_at),
            'isUsed': self.is_used,
        }
        if self.used_at:
            data['usedAt'] = to_iso(self.used_at)
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            code=str(data['code']),
            waste_type=data.get('wasteType'),
            quantity=data.get('quantity'),
            location=data.get('location'),
            farmer_id=data.get('farmerId'),
            created_at=from_iso(data['createdAt']),
            expires_at=from_iso(data['expiresAt']),
            is_used=bool(data.get('isUsed')),
            used_at=from_iso(data.get('usedAt')),
        )


@dataclass
class VerificationStats:
    total: int = 0
    used: int = 0
    active: int = 0
    expired: int = 0

    def to_dict(self):
        return {'total': self.total, 'used': self.used, 'active': self.active, 'expired': self.expired}


@dataclass
class VerificationRegistry:
    store: object
    simulation_mode: bool = False
    clock: object = utc_now
    rng: random.Random = field(default_factory=random.Random)

    def validate(self, request: VerificationRequest):
        for name, value in (('farmerId', request.farmer_id), ('wasteType', request.waste_type),
                            ('quantity', request.quantity), ('location', request.location)):
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(name, f"{name} is required")
        if isinstance(request.quantity, bool) or not isinstance(request.quantity, (int, float)):
            raise ValidationError('quantity', "quantity must be a number")
        if request.quantity <= 0:
            raise ValidationError('quantity', "quantity must be greater than 0")

    def issue(self, request: VerificationRequest) -> VerificationCode:
        self.validate(request)
        now = self.clock()
        codes = self._load()
        code = VerificationCode(
            id=uuid.uuid4().hex,
            code=self._pick_code(codes, request.farmer_id, now),
            waste_type=request.waste_type,
            quantity=request.quantity,
            location=request.location,
            farmer_id=request.farmer_id,
            created_at=now,
            expires_at=now + CODE_TTL,
        )
        codes.append(code)
        self._save(codes)
        logger.info("Verification code issued", code_id=code.id, farmer_id=code.farmer_id)
        return code

    def redeem(self, code: str, farmer_id: str) -> Optional[VerificationCode]:
        code = str(code).strip().upper()
        now = self.clock()
        codes = self._load()
        matching = [vc for vc in codes if vc.code == code and vc.farmer_id == farmer_id]

        for vc in matching:
            if vc.is_active(now):
                vc.is_used = True
                vc.used_at = now
                self._save(codes)
                logger.info("Verification code redeemed", code_id=vc.id, farmer_id=farmer_id)
                return vc

        if self.simulation_mode and not matching and self._in_simulated_range(code):
            synthetic = VerificationCode(
                id=uuid.uuid4().hex,
                code=code,
                waste_type='Simulated Waste',
                quantity=10,
                location='Simulated Location',
                farmer_id=farmer_id,
                created_at=now,
                expires_at=now + CODE_TTL,
                is_used=True,
                used_at=now,
            )
            codes.append(synthetic)
            self._save(codes)
            logger.warning("Simulated verification code accepted", code=code, farmer_id=farmer_id)
            return synthetic

        logger.info("Verification code rejected", code=code, farmer_id=farmer_id)
        return None

    def all_codes(self) -> List[VerificationCode]:
        return self._load()

    def codes_for(self, farmer_id) -> List[VerificationCode]:
        return [vc for vc in self._load() if vc.farmer_id == farmer_id]

    def stats(self, farmer_id) -> VerificationStats:
        now = self.clock()
        stats = VerificationStats()
        for vc in self.codes_for(farmer_id):
            stats.total += 1
            if vc.is_used:
                stats.used += 1
            elif vc.is_expired(now):
                stats.expired += 1
            else:
                stats.active += 1
        return stats

    def cleanup_expired(self) -> int:
        now = self.clock()
        codes = self._load()
        kept = [vc for vc in codes if vc.is_used or not vc.is_expired(now)]
        removed = len(codes) - len(kept)
        if removed:
            self._save(kept)
        logger.info("Expired verification codes removed", removed=removed)
        return removed

    def _pick_code(self, codes, farmer_id, now):
        # Unique within the farmer's active set only; the same number may be
        # live for another farmer.
        taken = {vc.code for vc in codes if vc.farmer_id == farmer_id and vc.is_active(now)}
        free = [str(n) for n in range(CODE_MIN, CODE_MAX + 1) if str(n) not in taken]
        if not free:
            raise ValidationError('farmerId', "farmer already holds every available active code")
        return self.rng.choice(free)

    @staticmethod
    def _in_simulated_range(code):
        try:
            return CODE_MIN <= int(code) <= CODE_MAX
        except ValueError:
            return False

    def _load(self):
        try:
            return [VerificationCode.from_dict(item) for item in self.store.get_json(STORAGE_KEY, [])]
        except (StorageError, KeyError, TypeError, ValueError) as e:
            logger.error("Error getting verification codes", error=str(e))
            return []

    def _save(self, codes):
        self.store.set_json(STORAGE_KEY, [vc.to_dict() for vc in codes])
