"""Resolves a branch alias such as "latest" to the versioned tag it points at."""

from typing import Optional, Sequence

from ..models.upstream import DockerTag


def find_versioned_tag_matching_branch(tags: Sequence[DockerTag], branch_name: str) -> Optional[DockerTag]:
    """Find the tag a branch alias currently refers to.

    If a tag is literally named ``branch_name``, the first other tag with the
    same full size is returned in its place, since that tag carries the real
    version. With no literal match the first tag is returned, so ``tags`` must
    be in registry listing order. Returns None only when ``tags`` is empty.
    """
    if not tags:
        return None

    alias_tag = next((tag for tag in tags if tag.name == branch_name), None)
    if alias_tag is None:
        return tags[0]

    versioned_tag = next(
        (tag for tag in tags if tag != alias_tag and tag.full_size == alias_tag.full_size),
        None
    )
    return versioned_tag or alias_tag
