"""
AWS client layer.

Requests to S3, EC2 and SNS are built and signed here (Signature Version 4)
and sent with httpx; no AWS SDK is involved.
"""

from imageupload.aws.signer import RequestSigner, SignedHeaders
from imageupload.aws.transport import SignedRequest, TransportClient, call_with_retries
from imageupload.aws.xml import extract_all, extract_first, require

__all__ = [
    "RequestSigner",
    "SignedHeaders",
    "SignedRequest",
    "TransportClient",
    "call_with_retries",
    "extract_all",
    "extract_first",
    "require",
]
