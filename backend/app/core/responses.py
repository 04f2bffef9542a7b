from typing import Any


def envelope(message: str, data: Any = None) -> dict:
    return {"message": message, "data": data}
