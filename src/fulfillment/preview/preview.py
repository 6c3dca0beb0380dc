"""Preview: the low-resolution artwork a customer saw before paying.

Previews are produced upstream; this context only records them so that
intake can confirm a checkout refers to a real preview.
"""

from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment


@fulfillment.aggregate
class Preview:
    preview_id = Identifier(identifier=True, required=True)
    image_url = Text(required=True)
    story = Text()
    style = String(max_length=50)
    refined_prompt = Text()
    created_at = DateTime()


@fulfillment.command(part_of="Preview")
class RegisterPreview:
    preview_id = Identifier(required=True)
    image_url = Text(required=True)
    story = Text()
    style = String(max_length=50)
    refined_prompt = Text()


@fulfillment.command_handler(part_of=Preview)
class RegisterPreviewHandler:
    @handle(RegisterPreview)
    def register_preview(self, command):
        repo = current_domain.repository_for(Preview)
        try:
            repo.get(command.preview_id)
        except ObjectNotFoundError:
            preview = Preview(
                preview_id=command.preview_id,
                image_url=command.image_url,
                story=command.story,
                style=command.style,
                refined_prompt=command.refined_prompt,
                created_at=datetime.now(UTC),
            )
            repo.add(preview)
        return command.preview_id
