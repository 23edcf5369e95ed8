from dataclasses import dataclass

import structlog

from agroloop.errors import InsufficientCredits, RewardNotFound
from agroloop.services.ledger import REWARD_REDEMPTION

logger = structlog.get_logger()


@dataclass(frozen=True)
class Reward:
    id: str
    title: str
    category: str
    credits: int

    def to_dict(self):
        return {'id': self.id, 'title': self.title, 'category': self.category, 'credits': self.credits}


CATALOG = [
    Reward('organic-fertilizer', 'Organic Fertilizer 50kg', 'fertilizer', 500),
    Reward('npk-fertilizer', 'NPK Fertilizer 25kg', 'fertilizer', 300),
    Reward('urea-fertilizer', 'Urea Fertilizer 50kg', 'fertilizer', 250),
    Reward('bio-fertilizer', 'Bio Fertilizer Pack', 'fertilizer', 450),
    Reward('wheat-seeds', 'Hybrid Wheat Seeds 10kg', 'seeds', 300),
    Reward('rice-seeds', 'Rice Seeds Premium 5kg', 'seeds', 250),
    Reward('vegetable-seeds', 'Vegetable Seeds Mix', 'seeds', 150),
    Reward('soil-kit', 'Soil Testing Kit', 'tools', 400),
    Reward('sprayer-pump', 'Sprayer Pump', 'tools', 350),
    Reward('harvesting-sickle', 'Harvesting Sickle', 'tools', 150),
    Reward('consultation', 'Agricultural Consultation', 'services', 200),
    Reward('pest-control', 'Pest Control Service', 'services', 600),
]


class RewardsService:
    def __init__(self, catalog=None):
        self.catalog = {reward.id: reward for reward in (catalog or CATALOG)}

    def list_rewards(self, category=None):
        return [r for r in self.catalog.values() if category is None or r.category == category]

    def redeem(self, ledger, reward_id):
        reward = self.catalog.get(reward_id)
        if reward is None:
            raise RewardNotFound(reward_id)
        if ledger.eco_credits < reward.credits:
            raise InsufficientCredits(ledger.eco_credits, reward.credits)
        activity = ledger.append(REWARD_REDEMPTION, f"Redeemed: {reward.title}", credits=-reward.credits)
        logger.info("Reward redeemed", user_id=ledger.user_id, reward_id=reward_id, credits=reward.credits)
        return activity
