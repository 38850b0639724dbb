"""Error taxonomy for confidential operations

Every stage fails fast with one of these. Callers map ``category`` and
``status_code`` onto their own transport and may retry only when
``retryable`` is set.
"""

from typing import Any, Optional


class ConfidentialError(Exception):
    """Base class for all privwrap errors"""

    category = "internal"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Render the error body returned to callers"""
        return {"category": self.category, "msg": self.message}


class RequestError(ConfidentialError, ValueError):
    """Malformed request field"""

    category = "bad_request"
    status_code = 400


class AuthenticationError(ConfidentialError):
    """A signature failed verification against the wallet and message"""

    category = "authentication"
    status_code = 401


class PreconditionError(ConfidentialError):
    """Account is in the wrong configuration state for the operation"""

    category = "precondition"
    status_code = 400


class NotFoundError(PreconditionError):
    """A required account is absent from the ledger"""

    category = "not_found"
    status_code = 404


class DecodeError(ConfidentialError):
    """Ledger account bytes could not be decoded"""

    category = "decode"
    status_code = 500

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.field is not None:
            body["field"] = self.field
        return body


class DecryptionError(ConfidentialError):
    """Ciphertext could not be decrypted with the derived keys"""

    category = "decryption"
    status_code = 500


class KeyDerivationError(ConfidentialError):
    """Signature bytes cannot seed a valid key"""

    category = "key_derivation"
    status_code = 400


class ProofGenerationError(ConfidentialError):
    """Proof data could not be produced for the requested amount"""

    category = "proof_generation"
    status_code = 400


class QueryError(ConfidentialError):
    """A ledger query failed; safe to retry with the same inputs"""

    category = "query"
    status_code = 500
    retryable = True


class SerializationError(ConfidentialError):
    """Instruction or transaction packaging failed"""

    category = "serialization"
    status_code = 500
