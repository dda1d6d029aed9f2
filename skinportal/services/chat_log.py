import logging

from sqlalchemy.exc import SQLAlchemyError

from skinportal.errors import GatewayError, ValidationError
from skinportal.extensions import db
from skinportal.models.chat import ChatMessage

logger = logging.getLogger(__name__)

DISCLAIMER = "\n\nThis advice is for reference only and does not replace a diagnosis by a doctor."

SKIN_REPLY = (
    "About your skin concern:\n\n"
    "1. Watch for the ABCDE signs: Asymmetry, irregular Border, uneven Colour, "
    "Diameter above 6 mm and Evolution (any change in size, shape or colour)\n"
    "2. Bleeding, crusting, itching or pain in a mole deserves a prompt visit\n"
    "3. Protect your skin from the sun and avoid scratching the area\n"
    "4. You can upload a photo in the diagnosis section for a preliminary assessment "
    "that a doctor will then review"
)
DIET_REPLY = (
    "Healthy eating tips:\n\n"
    "1. Eat plenty of fresh vegetables and fruit\n"
    "2. Prefer whole grains\n"
    "3. Include good-quality protein\n"
    "4. Limit processed and sugary food\n"
    "5. Drink enough water every day\n\n"
    "A balanced diet also helps your skin."
)
EXERCISE_REPLY = (
    "Regular exercise matters:\n\n"
    "1. Aim for at least 150 minutes of moderate activity per week\n"
    "2. Walking, swimming and yoga are good options\n"
    "3. Clean your skin after working out\n"
    "4. Wear breathable clothing\n\n"
    "Better circulation benefits your skin too."
)
SLEEP_REPLY = (
    "Good sleep is essential:\n\n"
    "1. Get 7-9 hours every night\n"
    "2. Keep a regular schedule\n"
    "3. Avoid screens before bed\n"
    "4. Keep your bedroom comfortable\n\n"
    "Sleep helps the skin repair and regenerate."
)
STRESS_REPLY = (
    "Managing stress:\n\n"
    "1. Take short breaks and practise slow breathing\n"
    "2. Stay physically active\n"
    "3. Talk to people you trust\n"
    "4. Seek professional help if stress affects daily life\n\n"
    "Stress can trigger flare-ups of acne, eczema and psoriasis."
)
DEFAULT_REPLY = (
    "Thank you for your question. As your health assistant I suggest:\n\n"
    "1. Keep a healthy lifestyle\n"
    "2. Have regular check-ups\n"
    "3. See a doctor promptly if you have specific symptoms\n"
    "4. Use the AI diagnosis feature for a preliminary assessment\n\n"
    "Anything else I can help with?"
)


def contains_any(*keywords):
    def predicate(text):
        return any(k in text for k in keywords)
    return predicate


# Evaluated in order, first match wins
DEFAULT_RULES = [
    (contains_any("skin", "acne", "pimple", "mole", "rash", "lesion", "melanoma", "spot", "diagnos",
                  "皮肤", "痘痘", "痤疮", "黑色素", "色斑"), SKIN_REPLY),
    (contains_any("diet", "nutrition", "food", "eat", "饮食", "营养"), DIET_REPLY),
    (contains_any("exercise", "workout", "fitness", "sport", "运动", "锻炼"), EXERCISE_REPLY),
    (contains_any("sleep", "insomnia", "睡眠", "失眠"), SLEEP_REPLY),
    (contains_any("stress", "anxiety", "anxious", "压力", "焦虑"), STRESS_REPLY),
]


class RuleBasedResponder:
    def __init__(self, rules=None, default=DEFAULT_REPLY):
        self.rules = list(DEFAULT_RULES if rules is None else rules)
        self.default = default

    def respond(self, text):
        lowered = text.lower()
        for predicate, template in self.rules:
            if predicate(lowered):
                return template + DISCLAIMER
        return self.default + DISCLAIMER


ASSISTANT_PROMPT = """You are a friendly health assistant inside a skin-diagnosis portal.
Answer the user's question in plain language, briefly, and recommend seeing a doctor
for anything that needs a diagnosis. Never give a definitive diagnosis.

Question: {question}"""


class ModelResponder:
    """Asks the generative model; falls back to the rules when it is unreachable."""

    def __init__(self, gateway, fallback=None):
        self.gateway = gateway
        self.fallback = fallback or RuleBasedResponder()

    def respond(self, text):
        try:
            reply = self.gateway.generate_text(ASSISTANT_PROMPT.format(question=text))
        except GatewayError as e:
            logger.warning("Assistant model unavailable, using canned reply: %s", e)
            return self.fallback.respond(text)
        return reply + DISCLAIMER if reply else self.fallback.respond(text)


def build_responder(config, gateway):
    if config.get("CHAT_RESPONDER") == "model":
        return ModelResponder(gateway)
    return RuleBasedResponder()


class ChatLog:
    def __init__(self, responder):
        self.responder = responder

    def ask(self, user_id, text):
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message cannot be empty")

        reply = self.responder.respond(text)

        # Saving the exchange is best effort; the user still gets the reply
        try:
            db.session.add(ChatMessage(user_id=user_id, message=text, response=reply))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Saving chat message for user %s failed", user_id)

        return reply

    def history(self, user_id):
        return ChatMessage.query.filter_by(user_id=user_id)\
            .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc()).all()
