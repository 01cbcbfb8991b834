"""Identity keys for cached repositories and images."""

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class RepositoryKey:
    """Identifies a repository."""
    id: int
    name: str

    def __str__(self) -> str:
        return f"{self.name}({self.id})"


@dataclass(frozen=True, order=True)
class ImageKey:
    """Identifies an image. The owning repository never changes."""
    id: int
    name: str
    repository_key: RepositoryKey

    def __str__(self) -> str:
        return f"{self.repository_key.name}/{self.name}({self.id})"


@dataclass(frozen=True, order=True)
class ImageLookupKey:
    """Alternate image identity used by upstream data (namespace + name)."""
    repository_name: str
    image_name: str

    @classmethod
    def parse(cls, full_name: str) -> 'ImageLookupKey':
        """Parse a "<repository>/<image>" string."""
        repository_name, sep, image_name = full_name.partition('/')
        if not sep or not repository_name or not image_name or '/' in image_name:
            raise ValueError(f"Expected <repository>/<image>, got '{full_name}'")
        return cls(repository_name, image_name)

    def __str__(self) -> str:
        return f"{self.repository_name}/{self.image_name}"

