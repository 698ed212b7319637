"""Region to service hostname mapping."""

# us-east-1 is served by the legacy global S3 endpoint
GLOBAL_STORAGE_REGION = "us-east-1"


def storage_host(region: str) -> str:
    """Host to connect to for S3 requests in a region."""
    if region == GLOBAL_STORAGE_REGION:
        return "s3.amazonaws.com"
    return f"s3.{region}.amazonaws.com"


def bucket_host(bucket: str) -> str:
    """Virtual-hosted name of a bucket, used in Host headers and presigned URLs."""
    return f"{bucket}.s3.amazonaws.com"


def compute_host(region: str) -> str:
    return f"ec2.{region}.amazonaws.com"


def notification_host(region: str) -> str:
    return f"sns.{region}.amazonaws.com"


def object_url(bucket: str, path: str, query: str = "") -> str:
    """HTTPS URL of an object, optionally carrying a (presigned) query string."""
    url = f"https://{bucket_host(bucket)}{path}"
    return f"{url}?{query}" if query else url
