"""doclink service layer.

Business logic and external integrations:
- RequestIssuer: token issuance and link email
- SubmissionHandler: token-gated fetch and submit, tenant status updates
- DocumentUploadService: file upload for document requests
- lifecycle: expiry and transition rules shared by every path
- SqlRequestRepository: request store with newsfeed bookkeeping
- DocumentCatalog, NewsfeedService: tenant-facing reference data and feed
- ObjectStoreClient, EmailNotifier, HttpEventPublisher, HttpCRMClient:
  collaborators
- SideEffectDispatcher: post-commit best-effort side effects
"""

from doclink.services.errors import (
    ConflictError,
    DownstreamFailureError,
    InvalidInputError,
    RequestExpiredError,
    RequestLifecycleError,
    RequestNotAvailableError,
    RequestNotFoundError,
)
from doclink.services.issuer import CustomerInfo, IssuedRequest, RequestIssuer
from doclink.services.submission import SubmissionHandler

__all__ = [
    "ConflictError",
    "CustomerInfo",
    "DownstreamFailureError",
    "InvalidInputError",
    "IssuedRequest",
    "RequestExpiredError",
    "RequestIssuer",
    "RequestLifecycleError",
    "RequestNotAvailableError",
    "RequestNotFoundError",
    "SubmissionHandler",
]
