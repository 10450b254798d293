"""API routes for sector key derivation and the derived-key cache."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator

from spooltag.crypto.cached_kdf import CachedKeyDerivation
from spooltag.crypto.tag_auth import get_auth_payload
from .deps import get_key_derivation

router = APIRouter(prefix="/api/keys", tags=["keys"])


# ──────────────────────────────────────────────
# Request models
# ──────────────────────────────────────────────

class UidRequest(BaseModel):
    uid: str  # Hex string e.g. "7AD43F1C"

    @field_validator("uid")
    @classmethod
    def _check_uid(cls, v: str) -> str:
        v = v.strip().replace(":", "").replace(" ", "")
        try:
            raw = bytes.fromhex(v)
        except ValueError:
            raise ValueError("UID must be a hex string")
        if not raw:
            raise ValueError("UID must not be empty")
        return v.upper()

    @property
    def uid_bytes(self) -> bytes:
        return bytes.fromhex(self.uid)


def _uid_from_path(uid: str) -> bytes:
    try:
        return UidRequest(uid=uid).uid_bytes
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ──────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────

@router.post("/derive")
async def derive_keys_endpoint(
    req: UidRequest, derivation: CachedKeyDerivation = Depends(get_key_derivation)
):
    """Derive the 16 sector keys for a tag UID."""
    cached = derivation.is_cached(req.uid_bytes)
    keys = derivation.derive_keys(req.uid_bytes)
    return {"uid": req.uid, "keys": [k.hex().upper() for k in keys], "cached": cached}


@router.post("/auth")
async def auth_payload(
    req: UidRequest, derivation: CachedKeyDerivation = Depends(get_key_derivation)
):
    """Per-sector authentication keys for a reader bridge."""
    return get_auth_payload(derivation, req.uid_bytes)


@router.post("/preload", status_code=202)
async def preload_keys(
    req: UidRequest, derivation: CachedKeyDerivation = Depends(get_key_derivation)
):
    """Warm the cache for a UID in the background."""
    derivation.preload_keys(req.uid_bytes)
    return {"uid": req.uid, "status": "scheduled"}


@router.delete("/cache/{uid}")
async def invalidate_uid(uid: str, derivation: CachedKeyDerivation = Depends(get_key_derivation)):
    derivation.invalidate_uid(_uid_from_path(uid))
    return {"uid": uid.upper(), "invalidated": True}


@router.delete("/cache")
async def clear_cache(derivation: CachedKeyDerivation = Depends(get_key_derivation)):
    derivation.clear_cache()
    return {"cleared": True}


@router.get("/cache/stats")
async def cache_stats(derivation: CachedKeyDerivation = Depends(get_key_derivation)):
    """Cache counters and tier sizes."""
    stats = derivation.get_cache_statistics()
    sizes = derivation.get_cache_sizes()
    return {
        "initialized": derivation.is_cache_initialized(),
        "statistics": stats.to_dict() if stats is not None else None,
        "sizes": sizes.to_dict() if sizes is not None else None,
    }
