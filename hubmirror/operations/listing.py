"""Read-only views of the mirror."""

from typing import Dict, Any, List

from .common import DatabaseOperation, ImageServiceOperation, image_summary


class ListOperation(ImageServiceOperation):
    """Lists cached repositories and their images."""
    
    def list_repositories(self, include_hidden: bool = False) -> List[Dict[str, Any]]:
        if include_hidden:
            repositories = self.image_service.get_all_repositories()
        else:
            repositories = self.image_service.get_all_visible_repositories()
        
        return [
            {
                "Name": repository.name,
                "Hidden": repository.hidden,
                "Images": [image_summary(image) for image in repository.images]
            }
            for repository in repositories
        ]


class SchemaOperation(DatabaseOperation):
    """Creates the mirror tables."""
    
    def init_schema(self) -> Dict[str, Any]:
        self.image_dao.create_schema()
        return {'schema': 'created'}
