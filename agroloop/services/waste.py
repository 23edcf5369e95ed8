import structlog

from agroloop.errors import ValidationError, VerificationFailed
from agroloop.services.ledger import WASTE_LOG

logger = structlog.get_logger()

# Eco-credits earned per kg
WASTE_TYPES = {
    'stubble': {'label': 'Rice Stubble', 'credits': 5},
    'leaves': {'label': 'Crop Leaves', 'credits': 3},
    'stalks': {'label': 'Corn Stalks', 'credits': 4},
    'husks': {'label': 'Wheat Husks', 'credits': 3},
    'other': {'label': 'Other Waste', 'credits': 2},
}


def validate_quantity(quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or quantity <= 0:
        raise ValidationError('quantity', "quantity must be greater than 0")
    return quantity


def estimate_credits(waste_type, quantity):
    if waste_type not in WASTE_TYPES:
        raise ValidationError('wasteType', f"wasteType must be one of {', '.join(WASTE_TYPES)}")
    return int(quantity * WASTE_TYPES[waste_type]['credits'])


class WasteLogService:
    """Claims credits for a waste submission attested by a verification code."""

    def __init__(self, registry):
        self.registry = registry

    def log_waste(self, ledger, waste_type, quantity, location, code):
        validate_quantity(quantity)
        if not location:
            raise ValidationError('location', "location is required")
        if not code:
            raise ValidationError('verificationCode', "verificationCode is required")
        credits = estimate_credits(waste_type, quantity)

        redeemed = self.registry.redeem(code, ledger.user_id)
        if redeemed is None:
            raise VerificationFailed(code)

        label = WASTE_TYPES[waste_type]['label']
        activity = ledger.append(
            WASTE_LOG,
            f"Logged {label}",
            credits=credits,
            verification_code=redeemed.code,
            waste_type=waste_type,
            quantity=quantity,
            location=location,
        )
        logger.info("Waste logged", user_id=ledger.user_id, waste_type=waste_type, credits=credits)
        return activity
