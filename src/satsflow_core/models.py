"""Core data model for the refill and persistence layers."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Proof:
    """An opaque unit of e-cash bound to a mint keyset.

    Only ``id`` (the keyset id) and ``amount`` are read by the core; the
    cryptographic fields are carried through untouched.
    """
    id: str
    amount: int
    secret: str = ""
    C: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "amount": self.amount, "secret": self.secret, "C": self.C}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proof":
        return cls(
            id=str(data["id"]),
            amount=int(data["amount"]),
            secret=str(data.get("secret", "")),
            C=str(data.get("C", "")),
        )


@dataclass(frozen=True)
class MintKeyset:
    """A mint signing keyset and its input fee rate."""
    id: str
    unit: str = "sat"
    active: bool = True
    input_fee_ppk: Optional[int] = None  # fee per thousand proofs


@dataclass(frozen=True)
class InvoiceQuote:
    """A Lightning invoice issued by a mint against a mint quote."""
    payment_request: str
    quote_id: str


@dataclass
class PaymentResult:
    """Outcome of an NWC-funded mint operation."""
    success: bool
    proofs: List[Proof] = field(default_factory=list)
    error: Optional[str] = None
    quote_id: Optional[str] = None

    @classmethod
    def ok(cls, proofs: Optional[List[Proof]] = None, quote_id: Optional[str] = None) -> "PaymentResult":
        return cls(success=True, proofs=list(proofs or []), quote_id=quote_id)

    @classmethod
    def failed(cls, message: str) -> "PaymentResult":
        return cls(success=False, proofs=[], error=message)

    @property
    def amount(self) -> int:
        return sum(p.amount for p in self.proofs)


@dataclass(frozen=True)
class SyncedCredential:
    """A metered API key as reported by the credential balance sync.

    ``id`` is the key itself; it doubles as the bearer token for top-ups.
    """
    id: str
    balance_msats: int = 0
    base_url: str = ""
    invalid: bool = False


@dataclass
class Message:
    role: str
    content: Any
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data["role"] = self.role
        data["content"] = self.content
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        extra = {k: v for k, v in data.items() if k not in ("role", "content")}
        return cls(role=str(data.get("role", "")), content=data.get("content", ""), extra=extra)


@dataclass
class Conversation:
    """A chat conversation as persisted in the conversation snapshot."""
    id: str
    title: str = ""
    messages: List[Message] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
        )


@dataclass(frozen=True)
class AutoRefillStatus:
    """Point-in-time view of both refill channels."""
    nwc_auto_refill_enabled: bool
    api_auto_topup_enabled: bool
    is_processing_nwc_refill: bool
    is_processing_api_topup: bool
    last_nwc_refill_at: Optional[datetime]
    last_api_topup_at: Optional[datetime]
