"""ExtensionLedger: 고객별 마감일 연장 원장

(고객, 세목, 원 마감일) 키마다 유효한 연장은 최대 하나입니다.
같은 키로 새 연장을 부여하면 기존 연장은 철회(대체)되며, 누적되지 않습니다.
철회된 연장도 감사 목적으로 원장에 남습니다.
"""

import logging
import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from .errors import Conflict, NotFound, ValidationError
from .models import ClientDeadlineExtension, TaxType, as_calendar_date

logger = logging.getLogger(__name__)

ExtensionKey = Tuple[str, TaxType, date]

KEY_LOCK_STRIPES = 64


class ExtensionLedger:
    """고객별 마감일 연장 원장

    부여/철회는 키 단위 잠금으로 직렬화되고, 조회는 잠금 없이 수행됩니다.
    """

    def __init__(self, extensions: Optional[Iterable[ClientDeadlineExtension]] = None):
        """
        Args:
            extensions: 초기 연장 레코드 (저장소에서 읽은 레코드, ID 유지)
        """
        self._extensions: Dict[str, ClientDeadlineExtension] = {}
        self._active: Dict[ExtensionKey, str] = {}
        # 키를 고정 개수의 잠금에 나눠 담아 키가 늘어도 잠금 수는 일정함
        self._key_locks: List[threading.Lock] = [threading.Lock() for _ in range(KEY_LOCK_STRIPES)]
        self._sequence_lock = threading.Lock()
        self._last_sequence = 0

        for extension in extensions or []:
            self.restore(extension)

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def get_extension(self, extension_id: str) -> ClientDeadlineExtension:
        """
        Raises:
            NotFound: ID가 없는 경우
        """
        extension = self._extensions.get(extension_id)
        if extension is None:
            raise NotFound("ClientDeadlineExtension", extension_id)
        return extension

    def get_active_extension(
        self,
        client_id: str,
        tax_type: TaxType,
        original_deadline: date
    ) -> Optional[ClientDeadlineExtension]:
        """키에 해당하는 유효한(철회되지 않은) 연장, 없으면 None"""
        key = self._key(client_id, tax_type, original_deadline)
        extension_id = self._active.get(key)
        if extension_id is None:
            return None
        extension = self._extensions.get(extension_id)
        if extension is None or not extension.is_active:
            return None
        return extension

    def list_by_client(self, client_id: str) -> List[ClientDeadlineExtension]:
        """고객의 연장 이력 (부여 시각 내림차순, 철회 포함)"""
        client_id = _normalize_client_id(client_id)
        extensions = [e for e in list(self._extensions.values()) if e.client_id == client_id]
        return sorted(extensions, key=lambda e: (e.granted_at, e.sequence), reverse=True)

    def all_extensions(self) -> List[ClientDeadlineExtension]:
        return sorted(self._extensions.values(), key=lambda e: e.sequence)

    # ------------------------------------------------------------------
    # 변경
    # ------------------------------------------------------------------

    def grant(
        self,
        client_id: str,
        tax_type: TaxType,
        original_deadline: date,
        extended_deadline: date,
        granted_by: str,
        reason: Optional[str] = None
    ) -> ClientDeadlineExtension:
        """연장 부여

        Raises:
            ValidationError: 연장 마감일이 원 마감일보다 늦지 않거나 필수 값이 없는 경우
        """
        extension, _ = self.grant_with_supersession(
            client_id, tax_type, original_deadline, extended_deadline, granted_by, reason
        )
        return extension

    def grant_with_supersession(
        self,
        client_id: str,
        tax_type: TaxType,
        original_deadline: date,
        extended_deadline: date,
        granted_by: str,
        reason: Optional[str] = None
    ) -> Tuple[ClientDeadlineExtension, Optional[ClientDeadlineExtension]]:
        """연장 부여 후 (새 연장, 대체되어 철회된 기존 연장) 반환

        Raises:
            ValidationError: 연장 마감일이 원 마감일보다 늦지 않거나 필수 값이 없는 경우
        """
        key = self._key(client_id, tax_type, original_deadline)
        extended_deadline = as_calendar_date(extended_deadline, "extended_deadline")
        if extended_deadline <= key[2]:
            raise ValidationError(
                f"Extended deadline {extended_deadline.isoformat()} must be later than "
                f"original deadline {key[2].isoformat()}",
                field="extended_deadline"
            )
        if not granted_by or not str(granted_by).strip():
            raise ValidationError("granted_by is required", field="granted_by")

        with self._lock_for(key):
            now = datetime.now()
            extension = ClientDeadlineExtension(
                extension_id=str(uuid4()),
                client_id=key[0],
                tax_type=key[1],
                original_deadline=key[2],
                extended_deadline=extended_deadline,
                granted_by=str(granted_by).strip(),
                granted_at=now,
                reason=reason,
                sequence=self._next_sequence(),
            )
            self._extensions[extension.extension_id] = extension

            superseded = None
            prior_id = self._active.get(key)
            self._active[key] = extension.extension_id
            if prior_id is not None:
                superseded = replace(
                    self._extensions[prior_id],
                    revoked_at=now,
                    revoked_by=extension.granted_by,
                    superseded_by=extension.extension_id,
                )
                self._extensions[prior_id] = superseded

        if superseded is not None:
            logger.info(
                "Extension %s superseded by %s for client %s (%s, %s)",
                superseded.extension_id, extension.extension_id,
                key[0], key[1].value, key[2].isoformat()
            )
        logger.info(
            "Granted %d day extension %s to client %s for %s",
            extension.extension_days, extension.extension_id, key[0], key[1].value
        )
        return extension, superseded

    def revoke(self, extension_id: str, revoked_by: str = "system") -> ClientDeadlineExtension:
        """연장 철회

        이미 철회된 연장은 오류 없이 기존 레코드를 그대로 반환합니다.

        Raises:
            NotFound: ID가 없는 경우
        """
        extension = self.get_extension(extension_id)

        with self._lock_for(extension.key):
            extension = self._extensions[extension_id]
            if not extension.is_active:
                return extension

            revoked = replace(extension, revoked_at=datetime.now(), revoked_by=revoked_by)
            self._extensions[extension_id] = revoked
            if self._active.get(extension.key) == extension_id:
                del self._active[extension.key]

        logger.info("Revoked deadline extension %s", extension_id)
        return revoked

    def restore(self, extension: ClientDeadlineExtension) -> ClientDeadlineExtension:
        """저장소에서 읽은 연장을 그대로 적재

        Raises:
            Conflict: 같은 ID가 이미 있거나, 같은 키에 유효한 연장이 이미 있는 경우
        """
        with self._lock_for(extension.key):
            if extension.extension_id in self._extensions:
                raise Conflict(f"Extension {extension.extension_id} is already loaded")
            if extension.is_active and extension.key in self._active:
                raise Conflict(
                    f"Client {extension.client_id} already holds an active "
                    f"{extension.tax_type.value} extension for {extension.original_deadline.isoformat()}"
                )
            self._extensions[extension.extension_id] = extension
            if extension.is_active:
                self._active[extension.key] = extension.extension_id

        with self._sequence_lock:
            self._last_sequence = max(self._last_sequence, extension.sequence)
        return extension

    # ------------------------------------------------------------------
    # 내부 도우미
    # ------------------------------------------------------------------

    def _key(self, client_id: str, tax_type: TaxType, original_deadline: date) -> ExtensionKey:
        return (
            _normalize_client_id(client_id),
            TaxType.parse(tax_type),
            as_calendar_date(original_deadline, "original_deadline"),
        )

    def _lock_for(self, key: ExtensionKey) -> threading.Lock:
        """같은 키는 항상 같은 잠금 (서로 다른 키가 잠금을 공유할 수는 있음)"""
        return self._key_locks[hash(key) % len(self._key_locks)]

    def _next_sequence(self) -> int:
        with self._sequence_lock:
            self._last_sequence += 1
            return self._last_sequence

    def __len__(self) -> int:
        return len(self._extensions)


def _normalize_client_id(client_id) -> str:
    if client_id is None or isinstance(client_id, bool):
        raise ValidationError("client_id is required", field="client_id")
    normalized = str(client_id).strip()
    if not normalized:
        raise ValidationError("client_id is required", field="client_id")
    return normalized
