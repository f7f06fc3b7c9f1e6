import random
from typing import Optional

from asgiref.sync import sync_to_async

from notifications.models import MessageTemplate


class TemplateRepository:
    """Django ORM implementation of ``core.interfaces.TemplateStore``.

    ``rng`` picks among several templates for the same (type, lang); pass a seeded
    ``random.Random`` for deterministic selection.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    async def find_template(self, message_type: str, lang: str) -> Optional[str]:
        texts = await self._texts(message_type, lang)
        if not texts:
            return None
        return self.rng.choice(texts)

    @staticmethod
    @sync_to_async
    def _texts(message_type: str, lang: str):
        return list(
            MessageTemplate.objects.filter(type=message_type, lang=lang)
            .exclude(message="")
            .order_by("id")
            .values_list("message", flat=True)
        )
