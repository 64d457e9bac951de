"""WhatsApp Cloud API webhook envelope.

Only the parts needed to pull out inbound text messages are modelled;
everything else in the payload is accepted and ignored.
"""

from pydantic import BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TextBody(_Lenient):
    body: str = ""


class InboundMessage(_Lenient):
    sender: str = Field(..., alias="from")
    id: str | None = None
    type: str = "text"
    text: TextBody | None = None


class ChangeValue(_Lenient):
    messaging_product: str | None = None
    messages: list[InboundMessage] = Field(default_factory=list)


class Change(_Lenient):
    field: str | None = None
    value: ChangeValue = Field(default_factory=ChangeValue)


class Entry(_Lenient):
    id: str | None = None
    changes: list[Change] = Field(default_factory=list)


class WebhookEnvelope(_Lenient):
    object: str | None = None
    entry: list[Entry] = Field(default_factory=list)

    def text_messages(self) -> list[InboundMessage]:
        """Inbound text messages, in payload order; status callbacks are skipped."""
        return [
            message
            for entry in self.entry
            for change in entry.changes
            for message in change.value.messages
            if message.type == "text" and message.text is not None
        ]
