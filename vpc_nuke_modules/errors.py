import enum
from typing import Optional

from botocore.exceptions import ClientError

NOT_FOUND_CODES = {
    "Gateway.NotAttached",
    "InvalidPermission.NotFound",
}

CONFLICT_CODES = {
    "DependencyViolation",
    "IncorrectState",
    "InvalidState",
    "ResourceInUse",
}

AUTH_CODES = {
    "AuthFailure",
    "UnauthorizedOperation",
    "InvalidClientTokenId",
    "ExpiredToken",
    "OptInRequired",
}

VALIDATION_CODES = {
    "InvalidParameterValue",
    "InvalidParameterCombination",
    "InvalidFilter",
    "MissingParameter",
}


class ErrorKind(enum.Enum):
    TRANSPORT = "transport"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"


class NukeError(Exception):
    """Base class for errors raised by the teardown engine"""


class ValidationError(NukeError, ValueError):
    """Malformed request: unknown resource kind, bad filter, ambiguous route"""


class TransportError(NukeError):
    """The control plane could not be reached or refused our credentials"""


class ConflictError(NukeError):
    """A delete was rejected because something still depends on the resource"""


class StageError(NukeError):
    """A teardown stage failed; the remaining stages of the scope were skipped"""

    def __init__(self, region: str, stage: str, resource_id: Optional[str], cause: BaseException):
        self.region = region
        self.stage = stage
        self.resource_id = resource_id
        self.cause = cause
        target = f" on {resource_id}" if resource_id else ""
        super().__init__(f"[{region}] stage '{stage}' failed{target}: {cause}")


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def is_not_found(code: str) -> bool:
    return code.endswith(".NotFound") or code in NOT_FOUND_CODES


def classify_client_error(error: ClientError) -> ErrorKind:
    code = error_code(error)
    if is_not_found(code):
        return ErrorKind.NOT_FOUND
    if code in CONFLICT_CODES:
        return ErrorKind.CONFLICT
    if code in VALIDATION_CODES:
        return ErrorKind.VALIDATION
    return ErrorKind.TRANSPORT
