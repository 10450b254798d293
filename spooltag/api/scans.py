"""API routes for interpreting decrypted tag scans and dumps."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator

from spooltag.catalog.catalog import FilamentCatalog
from spooltag.interpreter.factory import InterpreterFactory
from spooltag.rfid.dump_import import scan_from_hex, scan_from_json_dump, scan_from_proxmark3
from spooltag.rfid.mifare import MAX_TAG_BLOCKS, NUM_SECTORS, TOTAL_BYTES
from spooltag.rfid.scan_data import DecryptedScanData, ScanResult, TagFormat
from .deps import get_catalog, get_interpreter_factory

router = APIRouter(prefix="/api", tags=["scans"])


# ──────────────────────────────────────────────
# Request models
# ──────────────────────────────────────────────

class ScanDataRequest(BaseModel):
    tag_uid: str
    technology: str = "android.nfc.tech.MifareClassic"
    tag_format: TagFormat = TagFormat.UNKNOWN
    manufacturer_name: str = "Unknown"
    scan_result: ScanResult = ScanResult.SUCCESS
    decrypted_blocks: dict[int, str]
    authenticated_sectors: list[int] = []
    failed_sectors: list[int] = []
    tag_size_bytes: int = TOTAL_BYTES
    sector_count: int = NUM_SECTORS

    @field_validator("decrypted_blocks")
    @classmethod
    def _check_block_indexes(cls, blocks: dict[int, str]) -> dict[int, str]:
        bad = sorted(i for i in blocks if not 0 <= i < MAX_TAG_BLOCKS)
        if bad:
            raise ValueError(f"Block indexes must be in 0..{MAX_TAG_BLOCKS - 1}, got {bad[:5]}")
        return blocks

    def to_scan_data(self) -> DecryptedScanData:
        return DecryptedScanData(
            tag_uid=self.tag_uid.upper(),
            technology=self.technology,
            tag_format=self.tag_format,
            manufacturer_name=self.manufacturer_name,
            scan_result=self.scan_result,
            decrypted_blocks=self.decrypted_blocks,
            authenticated_sectors=frozenset(self.authenticated_sectors),
            failed_sectors=frozenset(self.failed_sectors),
            tag_size_bytes=self.tag_size_bytes,
            sector_count=self.sector_count,
        )


class DumpRequest(BaseModel):
    # Exactly one of these
    hex_data: Optional[str] = None
    dump_text: Optional[str] = None              # Proxmark3 text dump
    blocks: Optional[dict[str, str]] = None      # {"0": "<32 hex>", ...}

    uid: Optional[str] = None
    failed_sectors: list[int] = []
    tag_format: TagFormat = TagFormat.UNKNOWN


def _scan_from_dump(req: DumpRequest) -> DecryptedScanData:
    given = [v for v in (req.hex_data, req.dump_text, req.blocks) if v is not None]
    if len(given) != 1:
        raise ValueError("Provide exactly one of hex_data, dump_text or blocks")
    kwargs = {"failed_sectors": req.failed_sectors, "tag_format": req.tag_format}
    if req.uid:
        kwargs["uid_hex"] = req.uid
    if req.hex_data is not None:
        return scan_from_hex(req.hex_data, **kwargs)
    if req.dump_text is not None:
        return scan_from_proxmark3(req.dump_text, **kwargs)
    return scan_from_json_dump({"blocks": req.blocks}, **kwargs)


def _interpret_or_404(factory: InterpreterFactory, data: DecryptedScanData) -> dict:
    info = factory.interpret(data)
    if info is None:
        raise HTTPException(status_code=404, detail="No interpreter recognized this tag")
    return info.to_dict()


# ──────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────

@router.post("/scans/interpret")
async def interpret_scan(
    req: ScanDataRequest, factory: InterpreterFactory = Depends(get_interpreter_factory)
):
    """Interpret a decrypted block map into filament data."""
    return _interpret_or_404(factory, req.to_scan_data())


@router.post("/scans/interpret-dump")
async def interpret_dump(
    req: DumpRequest, factory: InterpreterFactory = Depends(get_interpreter_factory)
):
    """Interpret an already-decrypted MIFARE Classic 1K dump."""
    try:
        data = _scan_from_dump(req)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _interpret_or_404(factory, data)


@router.get("/interpreters")
async def list_interpreters(factory: InterpreterFactory = Depends(get_interpreter_factory)):
    return {
        "formats": [f.value for f in factory.get_supported_formats()],
        "names": factory.get_supported_interpreter_names(),
    }


@router.post("/interpreters/refresh")
async def refresh_interpreters(
    catalog: FilamentCatalog = Depends(get_catalog),
    factory: InterpreterFactory = Depends(get_interpreter_factory),
):
    """Reload the filament catalog and rebuild the mapping-backed interpreters."""
    loaded = await catalog.load(force_refresh=bool(catalog.source_url))
    factory.refresh_mappings()
    mappings = catalog.current_mappings()
    return {
        "loaded": loaded,
        "version": mappings.version,
        "rfid_mappings": len(mappings.rfid_mappings),
        "products": len(mappings.products),
    }
