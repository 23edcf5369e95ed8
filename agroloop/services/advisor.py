"""Agricultural advice chat.

OpenAI answers when a key is configured; otherwise, or when the call fails,
the reply comes from a small keyword-matched knowledge base. The rolling
history lives in memory only and is lost on restart.
"""
import re
import time
from dataclasses import dataclass

import structlog
from openai import OpenAI, OpenAIError

from agroloop.services.outcomes import Ok, VendorError, VendorUnavailable
from agroloop.utils import elapsed_ms

logger = structlog.get_logger()

MAX_HISTORY = 10
VENDOR_CONFIDENCE = 0.95
LOCAL_CONFIDENCE = 0.8
ERROR_CONFIDENCE = 0.7

SYSTEM_PROMPT = """You are an expert agricultural AI assistant specializing in farming, crop management, pest control, soil health, irrigation, and sustainable agriculture practices.

Your expertise includes:
- Crop disease identification and treatment
- Pest management and control strategies
- Soil health assessment and improvement
- Irrigation and water management
- Fertilizer recommendations
- Weather impact on agriculture
- Sustainable farming practices
- Organic farming methods
- Crop rotation strategies
- Harvest timing and techniques

Provide practical, actionable advice that farmers can implement immediately. Always consider local conditions, sustainability, and cost-effectiveness. If you're unsure about something, recommend consulting with local agricultural experts.

Keep responses concise but informative, and always prioritize safety and environmental responsibility."""

EMPTY_REPLY = "I apologize, but I couldn't generate a response at this time."

# Checked in order; the first bucket with a matching keyword answers.
KNOWLEDGE_BASE = [
    (('disease', 'diseases', 'sick', 'rot', 'rotting', 'blight', 'mildew', 'fungus', 'fungal', 'infection', 'infected'),
     "For crop diseases, first identify the symptoms: yellowing leaves, spots, wilting or stunted growth. "
     "Remove affected plant parts immediately and apply an appropriate fungicide. For root rot, improve soil "
     "drainage, let the soil dry out between waterings, trim away soft or blackened roots and treat the soil "
     "with a fungicide. Improve air circulation and avoid overhead watering to prevent fungal diseases."),
    (('irrigation', 'irrigate', 'water', 'watering', 'drip'),
     "Water management is crucial for crop health. Most crops need 1-2 inches of water per week. Use drip "
     "irrigation for efficiency and water early morning to reduce evaporation. Monitor soil moisture regularly "
     "and adjust based on weather conditions."),
    (('fertilizer', 'fertilizers', 'fertiliser', 'nutrient', 'nutrients', 'npk', 'manure'),
     "Soil testing helps determine fertilizer needs. Most crops benefit from balanced NPK fertilizers. Apply "
     "fertilizers at planting and during growth stages. Organic options like compost and manure improve soil "
     "health long-term."),
    (('organic', 'natural'),
     "Organic pest control methods include neem oil, insecticidal soap, and beneficial insects like ladybugs. "
     "Companion planting with marigolds or garlic can deter pests. Regular monitoring helps catch problems early."),
    (('pest', 'pests', 'insect', 'insects', 'bug', 'bugs', 'aphids', 'worms'),
     "For pest control, identify the pest first. Use integrated pest management: start with cultural controls, "
     "then biological, and chemical as last resort. Regular monitoring and early intervention are key."),
    (('ph', 'acid', 'acidic', 'alkaline', 'lime'),
     "Most crops prefer soil pH between 6.0-7.0. Test soil pH annually. Add lime to raise pH or sulfur to lower "
     "it. Organic matter like compost helps buffer pH changes."),
    (('soil', 'dirt', 'compost'),
     "Healthy soil is the foundation of good farming. Add organic matter like compost, practice crop rotation, "
     "and avoid over-tilling. Test soil nutrients annually and maintain proper pH levels."),
    (('weather', 'climate', 'temperature', 'frost', 'rain', 'drought'),
     "Monitor weather forecasts for farming decisions. Protect crops from frost with covers or irrigation. "
     "Adjust planting times based on local climate. Consider drought-resistant varieties in dry areas."),
    (('harvest', 'yield'),
     "Harvest timing affects quality and yield. Most vegetables are best harvested in the morning when cool. "
     "Check maturity indicators like color, size, and firmness. Store harvested produce properly to maintain "
     "quality."),
    (('crop', 'crops', 'plant', 'plants', 'seed', 'seeds', 'rotation'),
     "For healthy crops, ensure proper spacing, regular watering, and pest monitoring. Rotate crops annually to "
     "prevent soil-borne diseases and maintain soil fertility."),
]

DEFAULT_REPLY = ("I'm here to help with your farming questions! I can assist with crop management, pest control, "
                 "soil health, irrigation, and more. What specific aspect of farming would you like to know more about?")


def local_reply(message):
    words = set(re.findall(r"[a-z]+", message.lower()))
    for keywords, reply in KNOWLEDGE_BASE:
        if words.intersection(keywords):
            return reply
    return DEFAULT_REPLY


@dataclass
class AdvisorReply:
    message: str
    confidence: float
    processing_time: int
    outcome: object

    def to_dict(self):
        return {
            'message': self.message,
            'confidence': self.confidence,
            'processingTime': self.processing_time,
            'outcome': self.outcome.to_dict(),
        }


class ConversationalAdvisoryClient:
    def __init__(self, config, client_factory=OpenAI, model='gpt-3.5-turbo', timeout=25):
        self.config = config
        self.client_factory = client_factory
        self.model = model
        self.timeout = timeout
        self._history = []
        self.clear()

    @property
    def history(self):
        return [dict(m) for m in self._history]

    def clear(self):
        self._history = [{'role': 'system', 'content': SYSTEM_PROMPT}]

    def ask(self, message) -> AdvisorReply:
        start_time = time.time()
        checkpoint = len(self._history)
        try:
            self._history.append({'role': 'user', 'content': message})
            if self.config.openai_api_key:
                outcome = self._query_openai()
            else:
                outcome = VendorUnavailable()

            if isinstance(outcome, Ok):
                reply, confidence = outcome.response, VENDOR_CONFIDENCE
            else:
                if isinstance(outcome, VendorError):
                    logger.warning("OpenAI API failed, falling back to local knowledge base", reason=outcome.reason)
                reply, confidence = local_reply(message), LOCAL_CONFIDENCE

            self._history.append({'role': 'assistant', 'content': reply})
            self._trim()
            return AdvisorReply(reply, confidence, elapsed_ms(start_time), outcome)
        except Exception as e:
            logger.error("AI Expert chat failed", error=str(e))
            del self._history[checkpoint:]
            return AdvisorReply(local_reply(message), ERROR_CONFIDENCE, elapsed_ms(start_time), VendorError(str(e)))

    def _query_openai(self):
        try:
            client = self.client_factory(api_key=self.config.openai_api_key, timeout=self.timeout)
            response = client.chat.completions.create(
                model=self.model,
                messages=self.history,
                max_tokens=500,
                temperature=0.7,
            )
        except OpenAIError as e:
            return VendorError(f"{type(e).__name__}: {e}")
        content = response.choices[0].message.content if response.choices else None
        return Ok((content or '').strip() or EMPTY_REPLY)

    def _trim(self):
        if len(self._history) > MAX_HISTORY + 1:
            self._history = [self._history[0]] + self._history[-MAX_HISTORY:]

    def test_connection(self):
        return self.ask('Hello, can you help me with farming?').confidence > LOCAL_CONFIDENCE
