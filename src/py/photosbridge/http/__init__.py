from .model import (
	HTTPRequestLine,
	HTTPRequest,
	HTTPResponse,
	HTTPRequestError,
)  # NOQA: F401
from .parser import parseRequestLine, parseTarget  # NOQA: F401

# EOF
