from .base import Base
from .error_log import ErrorLog, ErrorLevel, ErrorService
