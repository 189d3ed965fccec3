# payments/access/base.py
from dataclasses import dataclass
from typing import Optional


@dataclass
class GrantResult:
    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "GrantResult":
        return cls(success=True)

    @classmethod
    def fail(cls, error: str) -> "GrantResult":
        return cls(success=False, error=error)
