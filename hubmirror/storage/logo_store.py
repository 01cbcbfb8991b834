"""S3 storage for image logos."""

import hashlib
import logging
import os
import boto3
from typing import Optional
from botocore.exceptions import ClientError
from ..config.settings import Config
from ..models.requests import ImageLogoUpload


logger = logging.getLogger(__name__)


class S3LogoStore:
    """Uploads image logos to an S3 compatible bucket."""
    
    def __init__(self, config: Config):
        self.config = config
        storage_config = config.logo_storage_config or {}
        self.bucket_name = storage_config.get('bucket', 'hubmirror-logos')
        self.public_url_prefix = storage_config.get('public_url_prefix', f"/{self.bucket_name}")
        self._client = None
        self._bucket_ready = False
    
    @property
    def client(self):
        """Lazy initialization of S3 client."""
        if self._client is None:
            self._client = boto3.client(
                's3',
                aws_access_key_id=self.config.s3_access_key_id,
                aws_secret_access_key=self.config.s3_secret_access_key,
                endpoint_url=self.config.s3_endpoint_url
            )
        return self._client
    
    def ensure_bucket_exists(self):
        """Create bucket if it doesn't exist."""
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            error_code = e.response['Error']['Code']
            if error_code == '404':
                try:
                    self.client.create_bucket(Bucket=self.bucket_name)
                except ClientError as create_error:
                    raise RuntimeError(f"Failed to create bucket {self.bucket_name}: {create_error}")
            else:
                raise RuntimeError(f"Error accessing bucket {self.bucket_name}: {e}")
    
    def get_logo_key(self, upload: ImageLogoUpload) -> str:
        """Object key derived from the logo content and file name."""
        content_hash = hashlib.sha256(upload.data).hexdigest()
        filename = os.path.basename(upload.filename) or "logo"
        return f"logos/{content_hash[:12]}-{filename}"
    
    def save_image_logo(self, upload: ImageLogoUpload) -> Optional[str]:
        """Upload a logo and return its public path, or None if the upload failed."""
        if not self._bucket_ready:
            try:
                self.ensure_bucket_exists()
            except RuntimeError as e:
                logger.error(f"Cannot store logo {upload.filename}: {e}")
                return None
            self._bucket_ready = True
        
        logo_key = self.get_logo_key(upload)
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=logo_key,
                Body=upload.data,
                ContentType=upload.content_type
            )
        except ClientError as e:
            logger.error(f"Failed to upload logo {upload.filename}: {e}")
            return None
        
        return f"{self.public_url_prefix.rstrip('/')}/{logo_key}"
