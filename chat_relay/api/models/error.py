from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error body returned before any stream is opened.

    For upstream rejections `details` carries `upstream_status`, `provider`
    and `model`.
    """

    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
