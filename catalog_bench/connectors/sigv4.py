"""
AWS Signature Version 4 signing for httpx requests.

The catalog endpoints of S3 Tables style services authenticate every request
with SigV4. Signing is delegated to botocore; only the headers the transport
will not rewrite (host, content-type) are signed.
"""

from __future__ import annotations

from typing import Generator, Optional

import httpx
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

_SIGNED_REQUEST_HEADERS = ("host", "content-type")
_SIGNATURE_HEADERS = ("Authorization", "X-Amz-Date", "X-Amz-Security-Token")


class AwsSigV4Auth(httpx.Auth):
    """httpx auth flow that adds SigV4 headers to each request."""

    requires_request_body = True

    def __init__(
        self,
        *,
        access_key: str,
        secret_key: str,
        region: str,
        service: str,
        session_token: Optional[str] = None,
    ) -> None:
        if not access_key or not secret_key:
            raise ValueError("SigV4 signing needs both an access key and a secret key")
        self.region = region
        self.service = service
        self._credentials = Credentials(access_key, secret_key, session_token or None)

    def sign(self, request: httpx.Request) -> None:
        headers = {
            name: request.headers[name]
            for name in _SIGNED_REQUEST_HEADERS
            if name in request.headers
        }
        aws_request = AWSRequest(
            method=request.method,
            url=str(request.url),
            data=request.content,
            headers=headers,
        )
        SigV4Auth(self._credentials, self.service, self.region).add_auth(aws_request)
        for name in _SIGNATURE_HEADERS:
            if name in aws_request.headers:
                request.headers[name] = aws_request.headers[name]

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        self.sign(request)
        yield request
