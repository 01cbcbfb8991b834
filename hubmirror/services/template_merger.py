"""Merges template edit requests into an image's metadata."""

from dataclasses import fields, replace

from ..models.entities import Image
from ..models.requests import ImageTemplateRequest


def merge_template_request_into_image(image: Image, request: ImageTemplateRequest) -> Image:
    """Return a clone of ``image`` whose template takes every field set on ``request``."""
    changes = {
        f.name: getattr(request, f.name)
        for f in fields(request)
        if getattr(request, f.name) is not None
    }
    if not changes:
        return image

    template = replace(image.metadata.template, **changes)
    return image.clone_with_metadata(image.metadata.clone_with_template(template))
