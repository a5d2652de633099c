"""Workshop persistence — JSON documents and the password gate in the local workspace."""

import hashlib
import hmac
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .workshop import Workshop

logger = logging.getLogger("workshop.persistence")

CURRENT_SCHEMA_VERSION = "1.0"


class NotFoundError(Exception):
    pass


class WorkshopNotFound(NotFoundError):
    pass


class PasswordNotSet(NotFoundError):
    pass


class Unauthorized(Exception):
    pass


class PasswordMismatch(ValueError):
    """New password is empty or its confirmation differs."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _atomic_write_json(path: Path, data: dict) -> None:
    temp_file = path.with_suffix(path.suffix + ".tmp")
    with open(temp_file, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    temp_file.replace(path)


class WorkshopStore:
    """One JSON document per workshop under ``root/workshops``."""

    def __init__(self, root: Path):
        self.directory = Path(root) / "workshops"
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.info("Workshop store ensured at %s", self.directory)

    def _path(self, workshop_id: str) -> Path:
        # ids are generated hex strings; anything else cannot name a document
        if not workshop_id or not workshop_id.isalnum():
            raise WorkshopNotFound(workshop_id)
        return self.directory / f"{workshop_id}.json"

    def _read(self, path: Path) -> Workshop:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        saved_version = data.pop("schemaVersion", "unknown")
        if saved_version != CURRENT_SCHEMA_VERSION:
            logger.warning(
                "%s saved with schema version %s (current: %s)",
                path.name, saved_version, CURRENT_SCHEMA_VERSION,
            )
        return Workshop.model_validate(data)

    def _write(self, workshop: Workshop) -> None:
        data = {"schemaVersion": CURRENT_SCHEMA_VERSION, **workshop.to_document()}
        _atomic_write_json(self._path(workshop.id), data)

    def list(self) -> list[dict]:
        """Summaries of all workshops, most recently updated first."""
        summaries = []
        for path in self.directory.glob("*.json"):
            try:
                workshop = self._read(path)
            except (OSError, ValueError, ValidationError) as e:
                logger.warning("Skipping unreadable workshop %s: %s", path.name, e)
                continue
            summaries.append({
                "id": workshop.id,
                "vision": workshop.vision,
                "updatedAt": workshop.updated_at,
            })
        summaries.sort(
            key=lambda s: s["updatedAt"] or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return summaries

    def get(self, workshop_id: str) -> Workshop:
        path = self._path(workshop_id)
        if not path.exists():
            raise WorkshopNotFound(workshop_id)
        return self._read(path)

    def create(self, vision: str = "") -> Workshop:
        now = _now()
        workshop = Workshop(
            id=uuid.uuid4().hex, vision=vision or "", created_at=now, updated_at=now
        )
        self._write(workshop)
        logger.info("Created workshop %s", workshop.id)
        return workshop

    def save(self, workshop_id: str, workshop: Workshop) -> Workshop:
        """Overwrite the whole document (last writer wins)."""
        existing = self.get(workshop_id)
        saved = workshop.model_copy(deep=True)
        saved.id = workshop_id
        saved.created_at = existing.created_at
        saved.updated_at = _now()
        self._write(saved)
        logger.info("Workshop %s saved", workshop_id)
        return saved

    def delete(self, workshop_id: str) -> None:
        path = self._path(workshop_id)
        path.unlink(missing_ok=True)
        logger.info("Workshop %s deleted", workshop_id)

    def latest_or_create(self) -> Workshop:
        summaries = self.list()
        if summaries:
            return self.get(summaries[0]["id"])
        return self.create("")


def check_new_password(password: str, confirm: str) -> str:
    """Return the new password once it is non-empty and confirmed."""
    if not password:
        raise PasswordMismatch("Password must not be empty")
    if password != confirm:
        raise PasswordMismatch("Passwords do not match")
    return password


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class CredentialStore:
    """Single shared password, stored as a SHA-256 digest."""

    def __init__(self, root: Path):
        self.path = Path(root) / "credentials.json"
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _stored_hash(self) -> str | None:
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f).get("password")

    def _matches(self, password: str | None, stored: str) -> bool:
        if password is None:
            return False
        return hmac.compare_digest(hash_password(password), stored)

    def status(self) -> dict:
        return {"isSet": self._stored_hash() is not None}

    def verify(self, password: str) -> dict:
        stored = self._stored_hash()
        if stored is None:
            raise PasswordNotSet("Password not set")
        if not self._matches(password, stored):
            raise Unauthorized("Invalid password")
        return {"success": True}

    def set(self, password: str, old_password: str | None = None) -> dict:
        """Set the password; changing an existing one requires the old password."""
        stored = self._stored_hash()
        if stored is not None and not self._matches(old_password, stored):
            raise Unauthorized("Invalid old password")
        _atomic_write_json(self.path, {"password": hash_password(password)})
        logger.info("Password %s", "changed" if stored else "set")
        return {"success": True}


class SaveCoalescer:
    """Trailing-debounce saves: only the last workshop state within the window is written."""

    def __init__(self, store: WorkshopStore, delay: float = 1.0):
        self.store = store
        self.delay = delay
        self._lock = threading.Lock()
        self._pending: dict[str, Workshop] = {}
        self._timers: dict[str, threading.Timer] = {}

    def schedule(self, workshop_id: str, workshop: Workshop) -> None:
        with self._lock:
            self._pending[workshop_id] = workshop.model_copy(deep=True)
            timer = self._timers.pop(workshop_id, None)
            if timer is not None:
                timer.cancel()
            timer = threading.Timer(self.delay, self._flush_one, args=(workshop_id,))
            timer.daemon = True
            self._timers[workshop_id] = timer
            timer.start()

    def _flush_one(self, workshop_id: str) -> None:
        with self._lock:
            workshop = self._pending.pop(workshop_id, None)
            self._timers.pop(workshop_id, None)
        if workshop is None:
            return
        try:
            self.store.save(workshop_id, workshop)
        except WorkshopNotFound:
            logger.warning("Workshop %s vanished before a pending save", workshop_id)

    def flush(self) -> None:
        """Write every pending save now."""
        with self._lock:
            ids = list(self._pending)
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
        for workshop_id in ids:
            self._flush_one(workshop_id)

    def cancel(self, workshop_id: str) -> None:
        with self._lock:
            self._pending.pop(workshop_id, None)
            timer = self._timers.pop(workshop_id, None)
        if timer is not None:
            timer.cancel()
