from django.db import models


class MessageTemplate(models.Model):
    """
    A localized notification text with ``{placeholder}`` tokens.

    Several rows may share (type, lang); one is picked at random per send.
    """
    lang = models.CharField(max_length=10)
    type = models.CharField(max_length=32)
    message = models.TextField()

    class Meta:
        db_table = "messages"
        indexes = [
            models.Index(fields=["type", "lang"], name="messages_type_lang_idx"),
        ]

    def __str__(self):
        return f"{self.type}/{self.lang} #{self.pk}"
