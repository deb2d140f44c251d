import boto3
from ..core.config import Settings


def s3(settings: Settings):
    """Create an S3 client from the configured region/endpoint/creds."""
    return boto3.client(
        "s3",
        region_name=settings.aws_region,
        endpoint_url=settings.aws_endpoint_url,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
    )
