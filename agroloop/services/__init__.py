from agroloop.services.advisor import ConversationalAdvisoryClient
from agroloop.services.ai_config import AIConfig, AIConfigRepository
from agroloop.services.auth import AuthService
from agroloop.services.disease import DiseaseAdvisoryClient
from agroloop.services.ledger import ActivityLedger
from agroloop.services.rewards import RewardsService
from agroloop.services.verification import VerificationRegistry
from agroloop.services.waste import WasteLogService
from agroloop.utils import utc_now


class Services:
    """Every service the app uses, wired around one key-value store.

    Vendor factories are injectable so tests can swap the PlantNet session and
    the OpenAI client for fakes.
    """

    def __init__(self, store, default_ai_config=None, simulation_mode=False, clock=utc_now,
                 session_factory=None, openai_factory=None, openai_model='gpt-3.5-turbo',
                 vendor_timeout=25, rng=None):
        self.store = store
        self.clock = clock
        self.rng = rng
        self.vendor_timeout = vendor_timeout
        self.session_factory = session_factory
        self.auth = AuthService(store)
        self.verification = VerificationRegistry(store, simulation_mode=simulation_mode, clock=clock)
        self.ai_config = AIConfigRepository(store, default_ai_config)
        self.rewards = RewardsService()
        self.waste = WasteLogService(self.verification)

        advisor_kwargs = {'model': openai_model, 'timeout': vendor_timeout}
        if openai_factory is not None:
            advisor_kwargs['client_factory'] = openai_factory
        self.advisor = ConversationalAdvisoryClient(AIConfig(), **advisor_kwargs)

    # The advisor conversation belongs to whoever is signed in; any session
    # change starts it over.
    def sign_in(self, email, password):
        user = self.auth.sign_in(email, password)
        self.advisor.clear()
        return user

    def sign_up(self, email, password):
        user = self.auth.sign_up(email, password)
        self.advisor.clear()
        return user

    def sign_out(self):
        self.auth.sign_out()
        self.advisor.clear()

    def delete_account(self, password):
        self.auth.delete_account(password)
        self.advisor.clear()

    def current_user(self):
        return self.auth.current_user or self.auth.restore()

    def require_user(self):
        self.current_user()
        return self.auth.require_user()

    def ledger(self, user=None):
        if user is None:
            user = self.require_user()
        return ActivityLedger(self.store.for_user(user.uid), clock=self.clock)

    def disease_client(self):
        kwargs = {'rng': self.rng, 'timeout': self.vendor_timeout}
        if self.session_factory is not None:
            kwargs['session_factory'] = self.session_factory
        return DiseaseAdvisoryClient(self.ai_config.load(), **kwargs)

    def chat_advisor(self):
        self.advisor.config = self.ai_config.load()
        return self.advisor


__all__ = [
    'AIConfig',
    'ActivityLedger',
    'AuthService',
    'ConversationalAdvisoryClient',
    'DiseaseAdvisoryClient',
    'RewardsService',
    'Services',
    'VerificationRegistry',
    'WasteLogService',
]
