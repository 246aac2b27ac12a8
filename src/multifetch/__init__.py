from .batch import BatchExecutor as BatchExecutor
from .client import HttpClient as HttpClient
from .exceptions import BatchStateError as BatchStateError
from .exceptions import HandleCreationError as HandleCreationError
from .exceptions import KeyGenerationError as KeyGenerationError
from .exceptions import KeyNotFoundError as KeyNotFoundError
from .exceptions import MultifetchError as MultifetchError
from .exceptions import MultiplexError as MultiplexError
from .exceptions import TransferError as TransferError
from .headers import parse_headers as parse_headers
from .models import BatchState as BatchState
from .models import HttpMethod as HttpMethod
from .models import HttpResponse as HttpResponse
from .models import RequestSpec as RequestSpec
from .models import SessionOptions as SessionOptions
from .models import Success as Success
from .models import TransportFailure as TransportFailure

__all__ = [
    "HttpClient",
    "BatchExecutor",
    "BatchState",
    "HttpMethod",
    "HttpResponse",
    "RequestSpec",
    "SessionOptions",
    "Success",
    "TransportFailure",
    "parse_headers",
    "MultifetchError",
    "BatchStateError",
    "HandleCreationError",
    "KeyGenerationError",
    "KeyNotFoundError",
    "MultiplexError",
    "TransferError",
]
